import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .db.session import Database, is_unique_violation
from .db.tables import Reward
from .errors import (
    DeadlineExceededError,
    DuplicateEntryError,
    DuplicateRewardError,
    ImbalanceError,
    RewardNotFoundError,
    UpstreamPriceUnavailableError,
)
from .ledger import Ledger
from .models import (
    CreateRewardRequest,
    LedgerEntry,
    RewardEvent,
    RewardResponse,
    TransactionType,
)
from .pricing import PriceSource
from .templates import GrantContext, TemplateRegistry, compute_grant_amounts, quantize_price
from .timeutil import utcnow
from .users import UserDirectory

logger = logging.getLogger(__name__)

DEFAULT_FEE_RATE = Decimal("0.01")


class RewardService:
    def __init__(
        self,
        db: Database,
        price_source: PriceSource,
        ledger: Optional[Ledger] = None,
        templates: Optional[TemplateRegistry] = None,
        users: Optional[UserDirectory] = None,
        fee_rate: Decimal = DEFAULT_FEE_RATE,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.price_source = price_source
        self.ledger = ledger or Ledger()
        self.templates = templates or TemplateRegistry()
        self.users = users or UserDirectory()
        self.fee_rate = Decimal(fee_rate)
        self.clock = clock

    def issue_reward(
        self,
        request: CreateRewardRequest,
        unit_price: Optional[Decimal] = None,
        timeout: Optional[float] = None,
    ) -> RewardResponse:
        reference_id = request.reference_id
        log_extra = {"reference_id": reference_id, "user_id": request.user_id, "symbol": request.stock_symbol}
        deadline = time.monotonic() + timeout if timeout else None

        if unit_price is None:
            unit_price = self._quote(request.stock_symbol)

        amounts = compute_grant_amounts(request.quantity, unit_price, self.fee_rate)
        template = self.templates.get_template(TransactionType.REWARD)
        context = GrantContext(user_id=request.user_id, stock_symbol=request.stock_symbol, amounts=amounts)
        lines = template.derive(context)
        now = self.clock()

        try:
            with self.db.transaction() as session:
                self._apply_deadline(session, deadline, reference_id)
                if self._reward_exists(session, reference_id):
                    raise DuplicateRewardError(reference_id)

                if self.users.ensure(session, request.user_id):
                    logger.info(f"Provisioned user {request.user_id}", extra=log_extra)

                reward = Reward(
                    user_id=request.user_id,
                    stock_symbol=request.stock_symbol,
                    quantity=amounts.quantity,
                    unit_price=amounts.unit_price,
                    reference_id=reference_id,
                    awarded_at=now,
                )
                session.add(reward)
                self._flush_reward(session, reference_id)
                self._check_deadline(deadline, reference_id)

                entry = self.ledger.post(
                    session, reference_id, template.describe(context), lines,
                    reference_type=TransactionType.REWARD, posted_at=now,
                )
                self._check_deadline(deadline, reference_id)
        except DuplicateRewardError:
            logger.info("Duplicate reward rejected", extra=log_extra)
            raise
        except DuplicateEntryError as e:
            logger.info("Duplicate reward rejected at ledger", extra=log_extra)
            raise DuplicateRewardError(reference_id) from e
        except ImbalanceError:
            logger.critical("Reward postings do not balance", extra=log_extra, exc_info=True)
            raise

        logger.info(
            f"Rewarded {amounts.quantity} {request.stock_symbol} at {amounts.unit_price}",
            extra=log_extra,
        )
        return RewardResponse(
            reward=RewardEvent.model_validate(reward),
            ledger_entry=LedgerEntry.model_validate(entry),
            message="Reward created successfully",
        )

    def get_reward(self, reference_id: str) -> RewardEvent:
        with self.db.session() as session:
            reward = session.scalar(select(Reward).where(Reward.reference_id == reference_id))
        if reward is None:
            raise RewardNotFoundError(f"Reward {reference_id} not found", reference_id=reference_id)
        return RewardEvent.model_validate(reward)

    def _quote(self, symbol: str) -> Decimal:
        try:
            price = quantize_price(self.price_source.quote(symbol))
        except UpstreamPriceUnavailableError:
            raise
        except Exception as e:
            logger.warning(f"Price source failed for {symbol}: {e}", extra={"symbol": symbol})
            raise UpstreamPriceUnavailableError(symbol, str(e)) from e
        if price <= 0:
            raise UpstreamPriceUnavailableError(symbol, f"non-positive quote {price}")
        return price

    def _reward_exists(self, session: Session, reference_id: str) -> bool:
        return session.scalar(select(Reward.id).where(Reward.reference_id == reference_id)) is not None

    def _flush_reward(self, session: Session, reference_id: str) -> None:
        try:
            session.flush()
        except IntegrityError as e:
            if is_unique_violation(e, "reference_id"):
                raise DuplicateRewardError(reference_id) from e
            raise

    def _apply_deadline(self, session: Session, deadline: Optional[float], reference_id: str) -> None:
        if deadline is None:
            return
        remaining = self._check_deadline(deadline, reference_id)
        if session.get_bind().dialect.name == "postgresql":
            session.execute(text(f"SET LOCAL statement_timeout = {max(int(remaining * 1000), 1)}"))

    def _check_deadline(self, deadline: Optional[float], reference_id: str) -> float:
        if deadline is None:
            return float("inf")
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise DeadlineExceededError("Reward issuance deadline exceeded", reference_id=reference_id)
        return remaining

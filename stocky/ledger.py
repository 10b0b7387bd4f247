"""Append-only double-entry journal.

Ledger.post runs inside the caller's transaction and never commits. The
balance and duplicate checks happen before anything is written; the UNIQUE
constraint on journal_entries.reference_id settles races between writers
that both passed the pre-check.
"""

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .db.session import is_unique_violation
from .db.tables import JournalEntry, JournalPosting
from .errors import DuplicateEntryError, ImbalanceError, InvalidPostingError
from .models import Direction, TransactionType
from .templates import PostingLine
from .timeutil import to_utc_naive, utcnow

logger = logging.getLogger(__name__)


def check_balance(lines: Sequence[PostingLine]) -> None:
    """Raise ImbalanceError unless debits equal credits for every asset."""
    totals: dict[str, dict[Direction, Decimal]] = defaultdict(
        lambda: {Direction.DEBIT: Decimal("0"), Direction.CREDIT: Decimal("0")}
    )
    for line in lines:
        asset = line.asset_kind.value if line.stock_symbol is None else f"{line.asset_kind.value}:{line.stock_symbol}"
        totals[asset][line.direction] += line.amount
    for asset, sides in totals.items():
        if sides[Direction.DEBIT] != sides[Direction.CREDIT]:
            raise ImbalanceError(asset, sides[Direction.DEBIT], sides[Direction.CREDIT])


class Ledger:
    def post(
        self,
        session: Session,
        reference_id: str,
        description: str,
        lines: Sequence[PostingLine],
        reference_type: TransactionType = TransactionType.REWARD,
        posted_at: Optional[datetime] = None,
    ) -> JournalEntry:
        if not lines:
            raise InvalidPostingError("A journal entry needs at least one posting", reference_id=reference_id)
        for line in lines:
            if line.amount <= 0:
                raise InvalidPostingError(
                    f"Posting amount must be positive, got {line.amount}",
                    reference_id=reference_id, account_id=line.account_id,
                )
        check_balance(lines)

        if self.get_entry(session, reference_id) is not None:
            raise DuplicateEntryError(reference_id)

        entry = JournalEntry(
            reference_type=reference_type.value,
            reference_id=reference_id,
            description=description,
            posted_at=to_utc_naive(posted_at) if posted_at else utcnow(),
        )
        entry.postings = [
            JournalPosting(
                account_id=line.account_id,
                amount=line.amount,
                direction=line.direction.value,
                asset_type=line.asset_kind.value,
                stock_symbol=line.stock_symbol,
            )
            for line in lines
        ]
        session.add(entry)
        try:
            session.flush()
        except IntegrityError as e:
            if is_unique_violation(e, "reference_id"):
                logger.info("Lost race on journal reference", extra={"reference_id": reference_id})
                raise DuplicateEntryError(reference_id) from e
            raise

        logger.debug("Journal entry posted", extra={"reference_id": reference_id, "entry_id": entry.id})
        return entry

    def get_entry(self, session: Session, reference_id: str) -> Optional[JournalEntry]:
        return session.scalar(select(JournalEntry).where(JournalEntry.reference_id == reference_id))

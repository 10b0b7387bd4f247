from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Optional
import json

from . import accounts
from .errors import TemplateNotFoundError
from .models import AssetKind, Direction, TransactionType

MONEY_QUANTUM = Decimal("0.01")
QUANTITY_QUANTUM = Decimal("0.000001")
PRICE_QUANTUM = Decimal("0.0001")


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_quantity(value: Decimal) -> Decimal:
    return value.quantize(QUANTITY_QUANTUM, rounding=ROUND_HALF_UP)


def quantize_price(value: Decimal) -> Decimal:
    """Unit prices are stored with four decimal places."""
    return Decimal(value).quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)


class AmountBasis(str, Enum):
    GROSS_VALUE = "gross_value"
    FEE = "fee"
    TOTAL_OUTLAY = "total_outlay"
    QUANTITY = "quantity"


@dataclass(frozen=True)
class GrantAmounts:
    quantity: Decimal
    unit_price: Decimal
    gross_value: Decimal
    fee: Decimal
    total_outlay: Decimal

    def for_basis(self, basis: AmountBasis) -> Decimal:
        return getattr(self, basis.value)


def compute_grant_amounts(quantity: Decimal, unit_price: Decimal, fee_rate: Decimal) -> GrantAmounts:
    """Money is rounded to paise before the outlay is summed, so the INR legs balance exactly."""
    quantity = quantize_quantity(Decimal(quantity))
    unit_price = quantize_price(unit_price)
    gross = quantize_money(quantity * unit_price)
    fee = quantize_money(gross * Decimal(fee_rate))
    return GrantAmounts(
        quantity=quantity, unit_price=unit_price,
        gross_value=gross, fee=fee, total_outlay=gross + fee,
    )


@dataclass(frozen=True)
class PostingLine:
    account_id: int
    amount: Decimal
    direction: Direction
    asset_kind: AssetKind
    stock_symbol: Optional[str] = None


@dataclass(frozen=True)
class GrantContext:
    user_id: int
    stock_symbol: str
    amounts: GrantAmounts


@dataclass
class PostingRule:
    account_id: int
    direction: Direction
    asset_kind: AssetKind
    basis: AmountBasis

    def apply(self, context: GrantContext) -> PostingLine:
        return PostingLine(
            account_id=self.account_id,
            amount=context.amounts.for_basis(self.basis),
            direction=self.direction,
            asset_kind=self.asset_kind,
            # stock legs are scoped to the granted symbol
            stock_symbol=context.stock_symbol if self.asset_kind == AssetKind.STOCK else None,
        )

    def to_dict(self) -> dict:
        return {
            "account_id": self.account_id, "direction": self.direction.value,
            "asset_kind": self.asset_kind.value, "basis": self.basis.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PostingRule":
        return cls(
            account_id=int(data["account_id"]), direction=Direction(data["direction"]),
            asset_kind=AssetKind(data["asset_kind"]), basis=AmountBasis(data["basis"]),
        )


@dataclass
class PostingTemplate:
    transaction_type: TransactionType
    rules: list[PostingRule]
    description_format: str = ""
    metadata: dict = field(default_factory=dict)

    def derive(self, context: GrantContext) -> list[PostingLine]:
        """Posting lines for a grant. Legs that round to zero are left out."""
        lines = [rule.apply(context) for rule in self.rules]
        return [line for line in lines if line.amount != 0]

    def describe(self, context: GrantContext) -> str:
        return self.description_format.format(
            quantity=format(context.amounts.quantity.normalize(), "f"),
            symbol=context.stock_symbol,
            user_id=context.user_id,
            unit_price=context.amounts.unit_price,
        )

    def to_dict(self) -> dict:
        return {
            "transaction_type": self.transaction_type.value,
            "description_format": self.description_format,
            "rules": [r.to_dict() for r in self.rules],
            "metadata": self.metadata,
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict) -> "PostingTemplate":
        return cls(
            transaction_type=TransactionType(data["transaction_type"]),
            rules=[PostingRule.from_dict(r) for r in data["rules"]],
            description_format=data.get("description_format", ""),
            metadata=data.get("metadata", {}),
        )


class TemplateRegistry:
    def __init__(self, templates: Optional[list[PostingTemplate]] = None):
        self.templates: dict[TransactionType, PostingTemplate] = {}
        for template in templates if templates is not None else [reward_grant_template()]:
            self.add_template(template)

    def add_template(self, template: PostingTemplate) -> None:
        self.templates[template.transaction_type] = template

    def get_template(self, transaction_type: TransactionType) -> PostingTemplate:
        template = self.templates.get(transaction_type)
        if template is None:
            raise TemplateNotFoundError(f"No posting template for {transaction_type.value}")
        return template

    def list_templates(self) -> list[PostingTemplate]:
        return list(self.templates.values())


def reward_grant_template() -> PostingTemplate:
    return PostingTemplate(
        transaction_type=TransactionType.REWARD,
        description_format="Reward {quantity} {symbol} to User {user_id}",
        rules=[
            PostingRule(accounts.HOUSE_CASH_EXPENSE, Direction.DEBIT, AssetKind.INR, AmountBasis.GROSS_VALUE),
            PostingRule(accounts.BROKERAGE_FEE_EXPENSE, Direction.DEBIT, AssetKind.INR, AmountBasis.FEE),
            PostingRule(accounts.USER_CASH_LIABILITY, Direction.CREDIT, AssetKind.INR, AmountBasis.TOTAL_OUTLAY),
            PostingRule(accounts.STOCK_INVENTORY, Direction.CREDIT, AssetKind.STOCK, AmountBasis.QUANTITY),
            PostingRule(accounts.USER_STOCK_ASSET, Direction.DEBIT, AssetKind.STOCK, AmountBasis.QUANTITY),
        ],
    )

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AccountKind(str, Enum):
    CASH = "CASH"
    BROKERAGE_FEE = "BROKERAGE_FEE"
    STOCK_INVENTORY = "STOCK_INVENTORY"
    USER_CASH_LIABILITY = "USER_CASH_LIABILITY"
    USER_STOCK_ASSET = "USER_STOCK_ASSET"


class Direction(str, Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class AssetKind(str, Enum):
    INR = "INR"
    STOCK = "STOCK"


class TransactionType(str, Enum):
    REWARD = "REWARD"


class CreateRewardRequest(BaseModel):
    user_id: int = Field(..., gt=0)
    stock_symbol: str = Field(..., min_length=1, max_length=20)
    quantity: Decimal = Field(..., gt=0, decimal_places=6, description="Shares granted, fractional allowed")
    reference_id: str = Field(..., min_length=1, max_length=128, description="Unique key to prevent duplicates")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "user_id": 42,
            "stock_symbol": "TCS",
            "quantity": 5,
            "reference_id": "evt-1",
        }
    })

    @field_validator("stock_symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        return v.strip().upper()


class RecordPriceRequest(BaseModel):
    stock_symbol: str = Field(..., min_length=1, max_length=20)
    price: Decimal = Field(..., ge=Decimal("0.0001"), description="INR, stored with four decimal places")
    timestamp: Optional[datetime] = None

    @field_validator("stock_symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        return v.strip().upper()


class RewardEvent(BaseModel):
    id: UUID
    user_id: int
    stock_symbol: str
    quantity: Decimal
    unit_price: Decimal
    reference_id: str
    awarded_at: datetime

    model_config = ConfigDict(from_attributes=True)


class LedgerPosting(BaseModel):
    account_id: int
    amount: Decimal
    direction: Direction
    asset_type: AssetKind
    stock_symbol: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class LedgerEntry(BaseModel):
    id: UUID
    reference_type: TransactionType
    reference_id: str
    description: str
    posted_at: datetime
    postings: list[LedgerPosting]

    model_config = ConfigDict(from_attributes=True)


class RewardResponse(BaseModel):
    reward: RewardEvent
    ledger_entry: LedgerEntry
    message: str


class PricePoint(BaseModel):
    stock_symbol: str
    price: Decimal
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class PriceQuote(BaseModel):
    stock_symbol: str
    price: Decimal
    as_of: Optional[datetime] = None


class StockStat(BaseModel):
    stock_symbol: str
    total_quantity: Decimal


class UserStats(BaseModel):
    total_shares_today: list[StockStat]
    portfolio_value: Decimal


class PortfolioItem(BaseModel):
    stock_symbol: str
    total_quantity: Decimal
    current_price: Decimal
    value_inr: Decimal


class HistoryPoint(BaseModel):
    date: date
    value: Decimal

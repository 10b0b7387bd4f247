from .base import Base
from .session import Database, is_unique_violation
from .tables import Account, JournalEntry, JournalPosting, Reward, StockPrice, User

__all__ = [
    "Base",
    "Database",
    "is_unique_violation",
    "Account",
    "JournalEntry",
    "JournalPosting",
    "Reward",
    "StockPrice",
    "User",
]

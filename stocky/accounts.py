"""House chart of accounts. Static reference data seeded with the schema."""

from .models import AccountKind

USER_CASH_LIABILITY = 1
HOUSE_CASH_EXPENSE = 2
BROKERAGE_FEE_EXPENSE = 3
USER_STOCK_ASSET = 4
STOCK_INVENTORY = 5

# (account_id, name, kind)
INITIAL_ACCOUNTS: list[tuple[int, str, AccountKind]] = [
    (USER_CASH_LIABILITY, "Reward Cash Liability", AccountKind.USER_CASH_LIABILITY),
    (HOUSE_CASH_EXPENSE, "Stock Purchase Expense", AccountKind.CASH),
    (BROKERAGE_FEE_EXPENSE, "Brokerage Fee Expense", AccountKind.BROKERAGE_FEE),
    (USER_STOCK_ASSET, "User Stock Holdings", AccountKind.USER_STOCK_ASSET),
    (STOCK_INVENTORY, "Stock Inventory", AccountKind.STOCK_INVENTORY),
]

"""Error hierarchy for the reward ledger.

Every error carries a stable ``code``, the HTTP status the API answers with,
and whether the caller may retry the whole operation.
"""

from typing import Optional


class StockyError(Exception):
    code = "STOCKY_ERROR"
    http_status = 500
    retryable = False

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_response(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "retryable": self.retryable,
                "details": {k: str(v) for k, v in self.details.items()},
            }
        }


class InvalidPostingError(StockyError):
    code = "INVALID_POSTING"
    http_status = 400


class ImbalanceError(StockyError):
    """Debits and credits of an entry differ for one asset kind."""

    code = "LEDGER_IMBALANCE"
    http_status = 500

    def __init__(self, asset: str, debits, credits):
        super().__init__(
            f"Unbalanced postings for {asset}: debits={debits} credits={credits}",
            asset=asset, debits=debits, credits=credits,
        )
        self.asset = asset


class DuplicateEntryError(StockyError):
    code = "DUPLICATE_ENTRY"
    http_status = 409

    def __init__(self, reference_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"Journal entry for reference {reference_id!r} already exists",
            reference_id=reference_id,
        )
        self.reference_id = reference_id


class DuplicateRewardError(DuplicateEntryError):
    """The reward was already applied; callers treat this as success."""

    code = "DUPLICATE_REWARD"

    def __init__(self, reference_id: str):
        super().__init__(reference_id, f"Duplicate reward event {reference_id!r}")


class RewardNotFoundError(StockyError):
    code = "REWARD_NOT_FOUND"
    http_status = 404


class UserNotFoundError(StockyError):
    code = "USER_NOT_FOUND"
    http_status = 404


class PriceNotFoundError(StockyError):
    code = "PRICE_NOT_FOUND"
    http_status = 404

    def __init__(self, symbol: str, as_of=None):
        super().__init__(f"No price for {symbol} as of {as_of}", symbol=symbol, as_of=as_of)
        self.symbol = symbol


class UpstreamPriceUnavailableError(StockyError):
    code = "UPSTREAM_PRICE_UNAVAILABLE"
    http_status = 503
    retryable = True

    def __init__(self, symbol: str, reason: str = ""):
        super().__init__(f"Failed to fetch stock price for {symbol}: {reason}".rstrip(": "), symbol=symbol)
        self.symbol = symbol


class TemplateNotFoundError(StockyError):
    code = "TEMPLATE_NOT_FOUND"
    http_status = 500


class StorageFailureError(StockyError):
    code = "STORAGE_FAILURE"
    http_status = 503
    retryable = True


class DeadlineExceededError(StorageFailureError):
    code = "DEADLINE_EXCEEDED"
    http_status = 504

"""
Domain errors raised by services and rendered by the exception handlers in main.py
"""

from decimal import Decimal
from enum import Enum
from typing import Optional


class NotFoundError(Exception):
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)
        self.message = message


class ValidationError(ValueError):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InsufficientBalanceError(ValidationError):
    """Raised when a debit would take a bank account past its overdraft limit."""

    def __init__(self, available: Decimal, amount: Decimal):
        self.available = available
        self.amount = amount
        self.shortfall = amount - available
        super().__init__(
            f"Insufficient balance: available {available:.2f}, "
            f"required {amount:.2f}, shortfall {self.shortfall:.2f}"
        )


class MLErrorKind(str, Enum):
    CONFIG_INCOMPLETE = "config_incomplete"
    MISSING_REFRESH_TOKEN = "missing_refresh_token"
    REFRESH_FAILED = "refresh_failed"
    REFRESH_INVALID_JSON = "refresh_invalid_json"
    REFRESH_MISSING_ACCESS_TOKEN = "refresh_missing_access_token"
    TOKEN_EXCHANGE_FAILED = "token_exchange_failed"
    USER_FETCH_FAILED = "user_fetch_failed"
    INTEGRATION_NOT_FOUND = "integration_not_found"
    INTEGRATION_EXPIRED = "integration_expired"
    INTEGRATION_NOT_CONNECTED = "integration_not_connected"
    REAUTH_REQUIRED = "reauth_required"
    INVALID_STATE = "invalid_state"
    INVALID_STATE_USER = "invalid_state_user"
    INVALID_USER_COMPANY = "invalid_user_company"
    INVALID_CONNECTION_TOKEN = "invalid_connection_token"
    UPSTREAM_ERROR = "upstream_error"


# HTTP status returned to our own callers for each kind
ML_ERROR_STATUS = {
    MLErrorKind.CONFIG_INCOMPLETE: 500,
    MLErrorKind.MISSING_REFRESH_TOKEN: 401,
    MLErrorKind.REFRESH_FAILED: 401,
    MLErrorKind.REFRESH_INVALID_JSON: 502,
    MLErrorKind.REFRESH_MISSING_ACCESS_TOKEN: 502,
    MLErrorKind.TOKEN_EXCHANGE_FAILED: 400,
    MLErrorKind.USER_FETCH_FAILED: 502,
    MLErrorKind.INTEGRATION_NOT_FOUND: 404,
    MLErrorKind.INTEGRATION_EXPIRED: 403,
    MLErrorKind.INTEGRATION_NOT_CONNECTED: 401,
    MLErrorKind.REAUTH_REQUIRED: 401,
    MLErrorKind.INVALID_STATE: 400,
    MLErrorKind.INVALID_STATE_USER: 403,
    MLErrorKind.INVALID_USER_COMPANY: 403,
    MLErrorKind.INVALID_CONNECTION_TOKEN: 400,
    MLErrorKind.UPSTREAM_ERROR: 502,
}


class MercadoLivreError(Exception):
    """Failure talking to Mercado Livre, tagged with an error kind callers can branch on."""

    def __init__(
        self,
        kind: MLErrorKind,
        message: Optional[str] = None,
        upstream_status: Optional[int] = None,
    ):
        self.kind = kind
        self.upstream_status = upstream_status
        self.message = message or kind.value
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        # Upstream client errors are passed through as-is
        if self.kind == MLErrorKind.UPSTREAM_ERROR and self.upstream_status and 400 <= self.upstream_status < 500:
            return self.upstream_status
        return ML_ERROR_STATUS.get(self.kind, 502)

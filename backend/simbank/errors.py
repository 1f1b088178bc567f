"""
Error taxonomy for the account engine.

Every error is local to a request: the caller renders it as a structured
rejection and no partial state change survives (the unit of work rolls back).
"""
from typing import Optional


class BankingError(Exception):
    code = "banking_error"
    status_code = 400

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.__class__.__doc__ or self.code
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {"error": self.code, "detail": self.detail}


class NotFound(BankingError):
    """Requested resource does not exist."""
    code = "not_found"
    status_code = 404


class AccountNotFound(NotFound):
    code = "account_not_found"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class PresetNotFound(NotFound):
    code = "preset_not_found"

    def __init__(self, preset_key: str):
        self.preset_key = preset_key
        super().__init__(f"Preset {preset_key} not found")


class InvalidAmount(BankingError):
    """Amount must be a positive, finite number."""
    code = "invalid_amount"
    status_code = 422


class InsufficientFunds(BankingError):
    """Amount exceeds the available balance."""
    code = "insufficient_funds"
    status_code = 409


class RecoveryExhausted(BankingError):
    """Balance is already at its maximum."""
    code = "recovery_exhausted"
    status_code = 409


class SelfReferenceRejected(BankingError):
    """Cannot transfer money to the same account."""
    code = "self_reference_rejected"
    status_code = 400


class Unauthorized(BankingError):
    """Missing or invalid credentials."""
    code = "unauthorized"
    status_code = 401

class LedgerError(Exception):
    code = "LEDGER_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class LedgerValidationError(LedgerError):
    code = "VALIDATION_ERROR"


class InvalidTransitionError(LedgerError):
    code = "INVALID_TRANSITION"


class BelowMinimumError(LedgerError):
    code = "BELOW_MINIMUM"


class InsufficientBalanceError(LedgerError):
    code = "INSUFFICIENT_BALANCE"


class ReferralNotFoundError(LedgerError):
    code = "NOT_FOUND"


class AlreadyAuthenticatedError(LedgerError):
    code = "ALREADY_AUTHENTICATED"


class NotAuthenticatedError(LedgerError):
    code = "NOT_AUTHENTICATED"

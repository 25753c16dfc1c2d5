"""Error taxonomy shared by the ledger services.

Services raise these; routers roll the session back and translate them into
HTTP responses via ``app.routers.errors.http_error``.
"""


class LedgerError(Exception):
    status_code = 400


class LedgerValidationError(LedgerError, ValueError):
    status_code = 400


class UnbalancedEntryError(LedgerValidationError):
    pass


class TaxConfigurationError(LedgerValidationError):
    pass


class InvalidStateError(LedgerError):
    status_code = 409


class PeriodClosedError(InvalidStateError):
    pass


class ConflictError(LedgerError):
    status_code = 409


class UnknownReferenceError(LedgerError, LookupError):
    status_code = 404

"""Domain errors raised by the ledger services.

Every error carries the HTTP status the routers answer with.
"""


class LedgerError(Exception):
    """Base class for all simulator errors."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(LedgerError):
    """A user, competition, team, membership or holding does not exist."""

    status_code = 404


class NoSuchHolding(NotFound):
    """Sell of a symbol the ledger does not hold."""


class InvalidCredentials(LedgerError):
    """Unknown username or wrong password."""

    status_code = 401


class Unauthorized(LedgerError):
    """The caller may not act on this resource."""

    status_code = 403


class InvalidRequest(LedgerError):
    """Malformed request that passed schema validation."""


class InsufficientFunds(LedgerError):
    """Buy cost exceeds the ledger's cash balance."""


class InsufficientShares(LedgerError):
    """Sell quantity exceeds the held quantity."""


class CompetitionNotStarted(LedgerError):
    """Trade before the competition's start date."""


class CompetitionEnded(LedgerError):
    """Trade after the competition's end date."""


class PriceUnavailable(LedgerError):
    """The quote provider failed, timed out or returned no usable price."""

    status_code = 502


class AlreadyExists(LedgerError):
    """A unique resource (e.g. username) is already taken."""

    status_code = 409


class TradeConflict(LedgerError):
    """Concurrent updates kept invalidating the trade; nothing was applied."""

    status_code = 409

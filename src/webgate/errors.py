from __future__ import annotations


class WebgateError(Exception):
    """Base class for errors raised by webgate."""


class MigrationError(WebgateError):
    """A migration failed; startup must not continue.

    ``applied`` lists the migrations that completed earlier in the same run.
    """

    def __init__(
        self,
        name: str,
        cause: BaseException | None = None,
        applied: list[str] | None = None,
        message: str | None = None,
    ) -> None:
        self.name = name
        self.cause = cause
        self.applied = list(applied or [])
        if message is None:
            message = f"Migration {name!r} failed: {cause!r}"
        super().__init__(message)


class MigrationOrderError(MigrationError):
    """The ledger is not an in-order prefix of the known migrations."""


class StartupGateClosed(WebgateError):
    """Traffic was requested before migrations completed."""


class SessionStoreError(WebgateError):
    """The session backend could not be read or written."""


class PrincipalNotFound(WebgateError):
    def __init__(self, reference: str) -> None:
        self.reference = reference
        super().__init__(f"No principal for reference {reference!r}")


class PrincipalLookupError(WebgateError):
    """The principal store failed while resolving a reference."""

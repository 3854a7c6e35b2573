from __future__ import annotations


class RoyaltyError(Exception):
    """Base class for errors raised by the royalty core."""


class EmptyInputError(RoyaltyError):
    """Raised when an import file has no non-blank lines."""

    def __init__(self, message: str = "Empty file") -> None:
        super().__init__(message)


class InvalidRecordError(RoyaltyError, ValueError):
    pass


class InvalidSettingsError(RoyaltyError, ValueError):
    pass


class MissingExchangeRateError(RoyaltyError, KeyError):
    """Raised when a conversion involves a currency absent from the rate table."""

    def __init__(self, currency: str) -> None:
        self.currency = currency
        super().__init__(f"No exchange rate for currency '{currency}'")

    def __str__(self) -> str:
        # KeyError.__str__ would wrap the message in quotes.
        return self.args[0]


class RecordNotFoundError(RoyaltyError, LookupError):
    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"No royalty record with id '{record_id}'")

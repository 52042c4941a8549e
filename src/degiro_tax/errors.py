from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal


class TaxReportError(Exception):
    """Base class for errors that abort a tax report."""


class MalformedRecord(TaxReportError):
    """A ledger row could not be turned into a valid transaction."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class InsufficientLots(TaxReportError):
    """A sell asks for more units than the open lots of a security hold."""

    def __init__(self, security_id: str, requested: Decimal, available: Decimal) -> None:
        self.security_id = security_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"cannot sell {requested} of {security_id}: only {available} held in open lots"
        )


class CurrencyMismatch(TaxReportError):
    """Two amounts in different currencies met where no conversion is possible."""

    def __init__(self, left: str | None, right: str | None) -> None:
        self.left = left
        self.right = right
        super().__init__(f"currency mismatch: {left!r} vs {right!r}")


class ConversionError(TaxReportError):
    """Base class for failures of the currency converter."""


class UnknownCurrency(ConversionError):
    def __init__(self, currency: str) -> None:
        self.currency = currency
        super().__init__(f"no exchange rates known for currency {currency!r}")


class MissingRate(ConversionError):
    def __init__(self, currency: str, at: date | datetime) -> None:
        self.currency = currency
        self.at = at
        super().__init__(f"no {currency} rate on or before {at:%Y-%m-%d}")

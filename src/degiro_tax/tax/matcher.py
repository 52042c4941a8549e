from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from ..errors import CurrencyMismatch
from .lots import Lot, LotLedger, LotSlice
from .records import Transaction

logger = logging.getLogger(__name__)


class CurrencyConverter(Protocol):
    def convert(self, amount: Decimal, from_currency: str, to_currency: str, at: datetime) -> Decimal:
        ...


@dataclass(frozen=True)
class RealizedGain:
    """Result of closing part (or all) of one lot against one sell."""

    security_id: str
    opened_at: datetime
    closed_at: datetime
    quantity_closed: Decimal
    cost_basis: Decimal
    proceeds: Decimal  # net of the allocated sell fee
    fee: Decimal
    currency: str

    @property
    def gain(self) -> Decimal:
        return self.proceeds - self.cost_basis

    @property
    def year(self) -> int:
        return self.closed_at.year


def allocate_fee(fee: Decimal, quantities: List[Decimal]) -> List[Decimal]:
    """Split `fee` across slices pro rata to quantity.

    The last slice takes whatever is left, so the parts always add up to `fee`
    exactly.
    """
    total = sum(quantities, Decimal(0))
    parts: List[Decimal] = []
    allocated = Decimal(0)
    for q in quantities[:-1]:
        part = fee * q / total
        parts.append(part)
        allocated += part
    parts.append(fee - allocated)
    return parts


class FifoMatcher:
    """Replays a ledger of buys and sells and emits realized gains.

    Records are processed in timestamp order; records sharing a timestamp keep
    their input order. Every security is tracked in one native currency: the
    `base_currency` when given, else the currency of its first buy. Prices and
    fees in any other currency go through `converter` at the record's own
    timestamp before they touch the ledger.
    """

    def __init__(self, converter: CurrencyConverter | None = None, base_currency: str | None = None) -> None:
        self.converter = converter
        self.base_currency = base_currency.upper() if base_currency else None
        self.ledger = LotLedger()
        self._native: Dict[str, str] = {}

    def native_currency(self, record: Transaction) -> str:
        if self.base_currency is not None:
            return self.base_currency
        return self._native.setdefault(record.security_id, record.currency)

    def _normalise(self, record: Transaction) -> Tuple[Decimal, Decimal, str]:
        target = self.native_currency(record)
        if record.currency == target:
            return record.unit_price, record.fees, target
        if self.converter is None:
            raise CurrencyMismatch(record.currency, target)
        price = self.converter.convert(record.unit_price, record.currency, target, record.timestamp)
        fees = self.converter.convert(record.fees, record.currency, target, record.timestamp)
        return price, fees, target

    def buy(self, record: Transaction) -> Lot:
        price, fees, currency = self._normalise(record)
        lot = Lot(
            security_id=record.security_id,
            opened_at=record.timestamp,
            remaining_quantity=record.quantity,
            unit_cost=price + fees / record.quantity,
            currency=currency,
        )
        self.ledger.open(lot)
        logger.debug("opened %s x %s @ %s %s", record.security_id, record.quantity, lot.unit_cost, currency)
        return lot

    def sell(self, record: Transaction) -> List[RealizedGain]:
        price, fees, currency = self._normalise(record)
        slices: List[LotSlice] = self.ledger.consume(record.security_id, record.quantity)
        fee_parts = allocate_fee(fees, [s.quantity for s in slices])

        events = []
        for piece, fee in zip(slices, fee_parts):
            events.append(RealizedGain(
                security_id=record.security_id,
                opened_at=piece.lot.opened_at,
                closed_at=record.timestamp,
                quantity_closed=piece.quantity,
                cost_basis=piece.unit_cost * piece.quantity,
                proceeds=price * piece.quantity - fee,
                fee=fee,
                currency=currency,
            ))
        logger.debug(
            "closed %s x %s against %d lot(s): %s %s",
            record.security_id,
            record.quantity,
            len(events),
            sum((e.gain for e in events), Decimal(0)),
            currency,
        )
        return events

    def run(self, records: Iterable[Transaction]) -> List[RealizedGain]:
        ordered = sorted(enumerate(records), key=lambda pair: (pair[1].timestamp, pair[0]))
        events: List[RealizedGain] = []
        for _, record in ordered:
            if record.is_buy:
                self.buy(record)
            else:
                events.extend(self.sell(record))
        logger.info("matched %d records into %d realized gain events", len(ordered), len(events))
        return events


def match_transactions(
    records: Iterable[Transaction],
    converter: Optional[CurrencyConverter] = None,
    base_currency: Optional[str] = None,
) -> List[RealizedGain]:
    """FIFO-match `records` and return the realized gain events in sell order."""
    return FifoMatcher(converter=converter, base_currency=base_currency).run(records)

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Deque, Dict, List, NamedTuple, Optional

import pandas as pd

from ..errors import InsufficientLots

logger = logging.getLogger(__name__)

ZERO = Decimal(0)


@dataclass
class Lot:
    security_id: str
    opened_at: datetime
    remaining_quantity: Decimal
    unit_cost: Decimal  # price + allocated buy fee, per unit
    currency: str


class LotSlice(NamedTuple):
    lot: Lot
    quantity: Decimal
    unit_cost: Decimal


class LotLedger:
    """Open buy lots per security, oldest first.

    Matching is strictly FIFO: `consume` always eats the oldest lot before
    touching a newer one. No other policy (LIFO, average cost) is offered,
    since the choice changes every realized gain downstream.
    """

    def __init__(self) -> None:
        self._lots: Dict[str, Deque[Lot]] = {}

    def open(self, lot: Lot) -> None:
        if lot.remaining_quantity <= 0:
            raise ValueError(f"lot for {lot.security_id} must hold a positive quantity")
        queue = self._lots.setdefault(lot.security_id, deque())
        if queue and queue[0].currency != lot.currency:
            raise ValueError(
                f"lot for {lot.security_id} in {lot.currency}, ledger holds {queue[0].currency}"
            )
        queue.append(lot)

    def available(self, security_id: str) -> Decimal:
        return sum((lot.remaining_quantity for lot in self._lots.get(security_id, ())), ZERO)

    def currency_of(self, security_id: str) -> Optional[str]:
        queue = self._lots.get(security_id)
        return queue[0].currency if queue else None

    def securities(self) -> List[str]:
        return [s for s, queue in self._lots.items() if queue]

    def open_lots(self, security_id: str | None = None) -> List[Lot]:
        if security_id is not None:
            return list(self._lots.get(security_id, ()))
        return [lot for queue in self._lots.values() for lot in queue]

    def consume(self, security_id: str, quantity: Decimal) -> List[LotSlice]:
        """Take `quantity` units from the head of the security's lots.

        Returns the consumed slices head to tail. The head lot is split when it
        holds more than is still needed. Nothing is mutated when the open lots
        cannot cover the request.
        """
        if quantity <= 0:
            raise ValueError(f"quantity to consume must be positive, got {quantity}")

        available = self.available(security_id)
        if available < quantity:
            raise InsufficientLots(security_id, quantity, available)

        queue = self._lots[security_id]
        slices: List[LotSlice] = []
        remaining = quantity
        while remaining > 0:
            lot = queue[0]
            take = min(lot.remaining_quantity, remaining)
            lot.remaining_quantity -= take
            remaining -= take
            slices.append(LotSlice(lot, take, lot.unit_cost))
            if lot.remaining_quantity == 0:
                queue.popleft()
            else:
                logger.debug(
                    "split %s lot of %s: %s left", security_id, lot.opened_at.date(), lot.remaining_quantity
                )
        if not queue:
            del self._lots[security_id]
        return slices

    def to_frame(self) -> pd.DataFrame:
        """Open lots as a table, one row per lot."""
        rows = [{
            "security_id": lot.security_id,
            "opened_at": lot.opened_at,
            "remaining_quantity": lot.remaining_quantity,
            "unit_cost": lot.unit_cost,
            "cost_basis": lot.remaining_quantity * lot.unit_cost,
            "currency": lot.currency,
        } for lot in self.open_lots()]
        columns = ["security_id", "opened_at", "remaining_quantity", "unit_cost", "cost_basis", "currency"]
        return pd.DataFrame(rows, columns=columns)

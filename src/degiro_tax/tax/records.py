from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from ..errors import MalformedRecord


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class Transaction:
    """One executed buy or sell from the broker ledger.

    `unit_price` and `fees` are both in `currency`. `quantity` is always
    positive; the direction lives in `side`.
    """

    security_id: str
    side: Side
    quantity: Decimal
    unit_price: Decimal
    currency: str
    fees: Decimal
    timestamp: datetime
    product: str = ""
    order_id: str = ""

    def __post_init__(self) -> None:
        if not self.security_id:
            raise MalformedRecord("transaction without security id")
        if self.quantity <= 0:
            raise MalformedRecord(f"{self.security_id}: quantity must be positive, got {self.quantity}")
        if self.fees < 0:
            raise MalformedRecord(f"{self.security_id}: fees must be non-negative, got {self.fees}")
        try:
            side = Side(self.side)
        except ValueError:
            raise MalformedRecord(f"{self.security_id}: unknown side {self.side!r}") from None
        # frozen: bypass __setattr__ to normalise the code
        object.__setattr__(self, "side", side)
        object.__setattr__(self, "currency", self.currency.strip().upper())

    @property
    def is_buy(self) -> bool:
        return self.side is Side.BUY

    @property
    def gross_value(self) -> Decimal:
        return self.quantity * self.unit_price

# fifo_engine.py
"""
Deterministic FIFO lot-matching engine.

Goal:
- Keep a queue of unmatched acquisition lots, oldest first.
- Match every disposed share against the oldest unmatched share, splitting
  lots when a disposal only consumes part of one.
- Emit one immutable Match per (disposal, lot) pair with its realized gain/loss.

Assumptions:
- Transactions arrive in true chronological order. We never reorder: a
  transaction dated before its predecessor is only logged. When bad ordering
  leaves a disposal without enough shares, InsufficientLotsError is raised.
- Same-date events are processed in input order.
- Values are converted to reporting currency with the transaction's own fx_rate
  (acquisitions at the acquisition rate, disposals at the disposal rate).

Design:
- This file is *pure logic* (no DB, no I/O). Give it transactions, get back
  matches. One FifoEngine instance per run; nothing is kept at module level.
- Decimal arithmetic only. The last slice of a disposal gets the unallocated
  remainder of its proceeds and the last slice of a lot gets the lot's
  remaining cost, so per-match figures always add back to the transaction
  totals. Rounding to cents happens only when reporting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, getcontext
from typing import Iterable, Iterator, List, Optional, Tuple

from .errors import InsufficientLotsError, InvalidTransactionError
from .schemas import Transaction, TxKind

# Use sufficient precision for money math.
getcontext().prec = 28

LOGGER = logging.getLogger(__name__)

ZERO = Decimal("0")
ONE = Decimal("1")


@dataclass
class Lot:
    """
    The unmatched slice of one acquisition.
    - remaining_quantity: shares still available to be disposed of
    - remaining_cost: cost basis still attached to those shares
    - remaining_native_cost: the same cost in the transaction currency,
      before conversion at the acquisition's fx_rate
    """

    acquired_date: date
    remaining_quantity: Decimal
    cost_per_unit: Decimal
    remaining_cost: Decimal
    fx_rate: Decimal = ONE
    remaining_native_cost: Optional[Decimal] = None

    def __post_init__(self) -> None:
        if self.remaining_native_cost is None:
            self.remaining_native_cost = self.remaining_cost * self.fx_rate

    def take(self, quantity: Decimal) -> Tuple[Decimal, Decimal]:
        """Remove `quantity` shares from the lot and return their (cost, native cost)."""
        if quantity == self.remaining_quantity:
            cost = self.remaining_cost
            native = self.remaining_native_cost
        else:
            cost = quantity * self.cost_per_unit
            native = quantity * self.remaining_native_cost / self.remaining_quantity
        self.remaining_quantity -= quantity
        self.remaining_cost -= cost
        self.remaining_native_cost -= native
        return cost, native


@dataclass(frozen=True)
class Match:
    """
    Part (or all) of a disposal paired with part (or all) of a lot.

    cost_basis and proceeds are in the reporting currency. The native_*
    figures are the broker's transaction-currency amounts, converted at
    acquired_fx_rate and disposal_fx_rate respectively.
    """

    quantity: Decimal
    acquired_date: date
    disposal_date: date
    cost_basis: Decimal
    proceeds: Decimal
    acquired_fx_rate: Decimal = ONE
    disposal_fx_rate: Decimal = ONE
    native_cost_basis: Optional[Decimal] = None
    native_proceeds: Optional[Decimal] = None

    def __post_init__(self) -> None:
        if self.native_cost_basis is None:
            object.__setattr__(self, "native_cost_basis", self.cost_basis * self.acquired_fx_rate)
        if self.native_proceeds is None:
            object.__setattr__(self, "native_proceeds", self.proceeds * self.disposal_fx_rate)

    @property
    def gain(self) -> Decimal:
        return self.proceeds - self.cost_basis

    @property
    def native_gain(self) -> Decimal:
        return self.native_proceeds - self.native_cost_basis


class LotQueue:
    """
    Array-backed FIFO of lots.

    Lots are appended at the tail and consumed from the head; the head index
    moves forward when a lot is exhausted and the backing list is compacted
    once the dead prefix gets large.
    """

    _COMPACT_AT = 64

    def __init__(self) -> None:
        self._items: List[Lot] = []
        self._head = 0

    def __len__(self) -> int:
        return len(self._items) - self._head

    def __iter__(self) -> Iterator[Lot]:
        return iter(self._items[self._head:])

    def push(self, lot: Lot) -> None:
        self._items.append(lot)

    def peek(self) -> Optional[Lot]:
        if self._head >= len(self._items):
            return None
        return self._items[self._head]

    def pop(self) -> Lot:
        lot = self.peek()
        if lot is None:
            raise IndexError("pop from an empty LotQueue")
        self._head += 1
        if self._head >= self._COMPACT_AT and self._head * 2 >= len(self._items):
            del self._items[: self._head]
            self._head = 0
        return lot

    def total_quantity(self) -> Decimal:
        return sum((lot.remaining_quantity for lot in self), ZERO)


def validate_transaction(tx: Transaction) -> None:
    """Raise InvalidTransactionError unless the amounts on `tx` are usable."""
    where = f"{tx.kind.value.lower()} on {tx.date.isoformat()}"
    if tx.quantity <= 0:
        raise InvalidTransactionError(f"{where}: quantity must be positive, got {tx.quantity}")
    if tx.total_value < 0:
        raise InvalidTransactionError(f"{where}: value must not be negative, got {tx.total_value}")
    if tx.fees < 0:
        raise InvalidTransactionError(f"{where}: fees must not be negative, got {tx.fees}")
    if tx.fx_rate <= 0:
        raise InvalidTransactionError(f"{where}: fx_rate must be positive, got {tx.fx_rate}")
    if tx.kind is TxKind.DISPOSAL and tx.fees > tx.total_value:
        raise InvalidTransactionError(
            f"{where}: fees {tx.fees} exceed the disposal value {tx.total_value}"
        )


class FifoEngine:
    """
    Single-run FIFO matcher.

    Usage:
        engine = FifoEngine()
        for tx in transactions:
            engine.ingest(tx)
        engine.matches  # audit list, in creation order
    """

    def __init__(self) -> None:
        self._lots = LotQueue()
        self._matches: List[Match] = []
        self._last_date: Optional[date] = None
        self.acquired_quantity = ZERO
        self.disposed_quantity = ZERO

    @property
    def matches(self) -> List[Match]:
        return list(self._matches)

    def open_lots(self) -> List[Lot]:
        """Snapshot of the unmatched lots, oldest first."""
        return [
            Lot(
                lot.acquired_date,
                lot.remaining_quantity,
                lot.cost_per_unit,
                lot.remaining_cost,
                lot.fx_rate,
                lot.remaining_native_cost,
            )
            for lot in self._lots
        ]

    def remaining_quantity(self) -> Decimal:
        return self._lots.total_quantity()

    def run(self, transactions: Iterable[Transaction]) -> List[Match]:
        for tx in transactions:
            self.ingest(tx)
        return self.matches

    def ingest(self, tx: Transaction) -> List[Match]:
        """
        Process one transaction.
          - ACQUISITION: append a new lot; returns [].
          - DISPOSAL: consume lots from the head; returns the matches it produced.
        """
        validate_transaction(tx)
        if self._last_date is not None and tx.date < self._last_date:
            LOGGER.warning(
                "Transaction on %s follows one on %s; input is not in chronological order "
                "and is matched as given.",
                tx.date.isoformat(),
                self._last_date.isoformat(),
            )
        self._last_date = tx.date

        if tx.kind is TxKind.ACQUISITION:
            self._acquire(tx)
            return []
        return self._dispose(tx)

    def _acquire(self, tx: Transaction) -> None:
        cost = tx.net_value
        self._lots.push(
            Lot(
                acquired_date=tx.date,
                remaining_quantity=tx.quantity,
                cost_per_unit=cost / tx.quantity,
                remaining_cost=cost,
                fx_rate=tx.fx_rate,
                remaining_native_cost=tx.native_net_value,
            )
        )
        self.acquired_quantity += tx.quantity
        LOGGER.debug("Acquired %s shares on %s at cost %s", tx.quantity, tx.date, cost)

    def _dispose(self, tx: Transaction) -> List[Match]:
        available = self._lots.total_quantity()
        if available < tx.quantity:
            raise InsufficientLotsError(tx.date, tx.quantity, available)

        proceeds_total = tx.net_value
        proceeds_left = proceeds_total
        native_total = tx.native_net_value
        native_left = native_total
        outstanding = tx.quantity
        produced: List[Match] = []

        while outstanding > 0:
            lot = self._lots.peek()
            if lot is None:
                # cannot happen after the availability check above
                raise InsufficientLotsError(tx.date, tx.quantity, tx.quantity - outstanding)
            take = min(outstanding, lot.remaining_quantity)
            cost, native_cost = lot.take(take)
            if take == outstanding:
                proceeds = proceeds_left
                native_proceeds = native_left
            else:
                proceeds = take * proceeds_total / tx.quantity
                native_proceeds = take * native_total / tx.quantity
            produced.append(
                Match(
                    quantity=take,
                    acquired_date=lot.acquired_date,
                    disposal_date=tx.date,
                    cost_basis=cost,
                    proceeds=proceeds,
                    acquired_fx_rate=lot.fx_rate,
                    disposal_fx_rate=tx.fx_rate,
                    native_cost_basis=native_cost,
                    native_proceeds=native_proceeds,
                )
            )
            proceeds_left -= proceeds
            native_left -= native_proceeds
            outstanding -= take
            if lot.remaining_quantity == 0:
                self._lots.pop()

        self._matches.extend(produced)
        self.disposed_quantity += tx.quantity
        LOGGER.debug(
            "Disposed of %s shares on %s across %d lot(s)", tx.quantity, tx.date, len(produced)
        )
        return produced


def compute_fifo(transactions: Iterable[Transaction]) -> Tuple[List[Match], FifoEngine]:
    """
    Run a fresh engine over `transactions` (in the order given).
    Returns (matches, engine) so callers can inspect the open lots afterwards.
    """
    engine = FifoEngine()
    matches = engine.run(transactions)
    return matches, engine

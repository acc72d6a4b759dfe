"""
Stock Level Value Object

Per-product counters maintained by the stock ledger.
"""

from dataclasses import dataclass

from storefront.core.domain import StockLedgerInvariantError, ValueObject


@dataclass(frozen=True)
class StockLevel(ValueObject):
    """
    Snapshot of a product's stock counters.

    Invariants: on_hand >= 0, sold >= 0 and 0 <= reserved <= on_hand.
    Constructing a level that breaks them raises StockLedgerInvariantError.
    """

    product_id: str
    on_hand: int
    reserved: int = 0
    sold: int = 0

    def _validate(self) -> None:
        if not self.satisfies_invariants():
            raise StockLedgerInvariantError(self.product_id, self.on_hand, self.reserved, self.sold)

    def satisfies_invariants(self) -> bool:
        return self.on_hand >= 0 and self.sold >= 0 and 0 <= self.reserved <= self.on_hand

    @property
    def available(self) -> int:
        """Units that can still be reserved."""
        return self.on_hand - self.reserved

    def can_reserve(self, quantity: int) -> bool:
        return self.available >= quantity

    def reserve(self, quantity: int) -> "StockLevel":
        return StockLevel(self.product_id, self.on_hand, self.reserved + quantity, self.sold)

    def release(self, quantity: int) -> "StockLevel":
        return StockLevel(self.product_id, self.on_hand, max(0, self.reserved - quantity), self.sold)

    def commit_sale(self, quantity: int) -> "StockLevel":
        return StockLevel(
            self.product_id,
            self.on_hand - quantity,
            max(0, self.reserved - quantity),
            self.sold + quantity,
        )

    def restock(self, quantity: int) -> "StockLevel":
        return StockLevel(self.product_id, self.on_hand + quantity, self.reserved, max(0, self.sold - quantity))

    def __str__(self) -> str:
        return f"{self.product_id}: on_hand={self.on_hand} reserved={self.reserved} sold={self.sold}"

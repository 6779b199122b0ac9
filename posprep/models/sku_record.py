from __future__ import annotations

from dataclasses import dataclass

from .sheet_data import SpreadsheetRow

"""Price list record and the matched output row derived from it."""

__all__ = [
    "SkuRecord",
    "MatchedOutputRow",
    "MATCHED_COLUMNS",
]

MATCHED_COLUMNS = [
    "SKU",
    "Barcode",
    "Card Name",
    "Condition",
    "Cost",
    "Price (Rounded)",
    "Price",
]


@dataclass(frozen=True)
class SkuRecord:
    """One price list row keyed by its trimmed TID.

    Monetary fields are kept as found in the price list; currency symbols are
    stripped only when an output row is synthesized.
    """
    tid: str
    sku: str
    name: str
    condition: str
    cost: str
    price_rounded: str
    price: str


@dataclass(frozen=True)
class MatchedOutputRow:
    sku: str
    barcode: str
    card_name: str
    condition: str
    cost: str
    price_rounded: str
    price: str

    def as_row(self) -> SpreadsheetRow:
        return dict(
            zip(
                MATCHED_COLUMNS,
                [
                    self.sku,
                    self.barcode,
                    self.card_name,
                    self.condition,
                    self.cost,
                    self.price_rounded,
                    self.price,
                ],
                strict=True,
            )
        )

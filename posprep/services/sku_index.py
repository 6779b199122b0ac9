from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from pathlib import Path

import pandas as pd

from ..models.sheet_data import SpreadsheetRow
from ..models.sku_record import SkuRecord
from ..sheets.reader import cell_text

"""SKU lookup index built from the price list.

Price list headers drift between exports ("TID " vs "TID", "gme sku" vs
"GME SKU", "Cost (USD)" vs "Cost"), so each required column is resolved by
trying four strategies in order:

1. exact        header == name
2. trimmed      header.strip() == name.strip()
3. tolerant     same after lower-casing and removing all whitespace
4. substring    tolerant name contained in tolerant header

Rows are indexed by their trimmed TID for constant time lookups.
"""

__all__ = [
    "TID",
    "GME_SKU",
    "POS_NAME",
    "CONDITION",
    "COST",
    "PRICE_ROUNDED",
    "PRICE",
    "REQUIRED_COLUMNS",
    "COLUMN_MATCH_STRATEGIES",
    "MissingPriceColumnsError",
    "PriceListError",
    "SkuLookupIndex",
    "load_price_list",
    "match_case_space_insensitive",
    "match_exact",
    "match_substring",
    "match_trimmed",
    "normalize_key",
    "resolve_column",
    "resolve_columns",
    "strip_currency",
]

logger = logging.getLogger(__name__)

TID = "TID"
GME_SKU = "GME SKU"
POS_NAME = "GME POS Name (36 Character Limit)"
CONDITION = "Condition Abbreviated"
COST = "Cost"
PRICE_ROUNDED = "Price (Rounded)"
PRICE = "Price"

# Price (Rounded) precedes Price so the substring strategy cannot hand
# "Price (Rounded)" to Price before it is claimed.
REQUIRED_COLUMNS = (TID, GME_SKU, POS_NAME, CONDITION, COST, PRICE_ROUNDED, PRICE)

_WHITESPACE = re.compile(r"\s+")


class PriceListError(Exception):
    """Raised when the price list cannot be read."""


class MissingPriceColumnsError(PriceListError):
    """Raised when required price list columns cannot be resolved."""

    def __init__(self, missing: list[str], headers: list[str]) -> None:
        self.missing = missing
        self.headers = headers
        super().__init__(f"price list missing columns: {missing} (headers: {headers})")


def _tolerant(value: str) -> str:
    return _WHITESPACE.sub("", value).lower()


def match_exact(name: str, header: str) -> bool:
    return header == name


def match_trimmed(name: str, header: str) -> bool:
    return header.strip() == name.strip()


def match_case_space_insensitive(name: str, header: str) -> bool:
    return _tolerant(header) == _tolerant(name)


def match_substring(name: str, header: str) -> bool:
    wanted = _tolerant(name)
    return bool(wanted) and wanted in _tolerant(header)


ColumnMatcher = Callable[[str, str], bool]

COLUMN_MATCH_STRATEGIES: tuple[tuple[str, ColumnMatcher], ...] = (
    ("exact", match_exact),
    ("trimmed", match_trimmed),
    ("case/space", match_case_space_insensitive),
    ("substring", match_substring),
)


def resolve_column(name: str, headers: Iterable[str], claimed: Iterable[str] = ()) -> str | None:
    """Return the header that best stands for the logical column ``name``.

    Strategies are tried in priority order; within a strategy the first
    header (in column order) wins. Headers in ``claimed`` are ignored.
    """
    taken = set(claimed)
    candidates = [h for h in headers if h not in taken]
    for label, matcher in COLUMN_MATCH_STRATEGIES:
        for header in candidates:
            if matcher(name, header):
                if label != "exact":
                    logger.debug("column %r resolved to %r (%s)", name, header, label)
                return header
    return None


def resolve_columns(headers: list[str], required: Iterable[str] = REQUIRED_COLUMNS) -> dict[str, str]:
    """Resolve every required logical column to an actual header.

    Raises:
        MissingPriceColumnsError: one or more columns could not be resolved
    """
    resolved: dict[str, str] = {}
    missing: list[str] = []
    for name in required:
        header = resolve_column(name, headers, claimed=resolved.values())
        if header is None:
            missing.append(name)
        else:
            resolved[name] = header
    if missing:
        raise MissingPriceColumnsError(missing, list(headers))
    return resolved


def normalize_key(value: object) -> str:
    """Lookup key form of an id cell: text, trimmed."""
    if isinstance(value, str):
        return value.strip()
    return cell_text(value).strip()


def strip_currency(value: str) -> str:
    """Remove dollar signs, thousands separators and surrounding whitespace.

    >>> strip_currency(" $1,299.50 ")
    '1299.50'
    """
    return str(value).replace("$", "").replace(",", "").strip()


class SkuLookupIndex:
    """Read-only mapping from trimmed TID to SkuRecord."""

    def __init__(self, records: dict[str, SkuRecord] | None = None) -> None:
        self._records: dict[str, SkuRecord] = dict(records or {})

    @classmethod
    def build(cls, rows: list[SpreadsheetRow], columns: list[str]) -> SkuLookupIndex:
        """Index price list rows; a later row with the same TID replaces an earlier one.

        Raises:
            MissingPriceColumnsError: a required column is not present
        """
        mapping = resolve_columns(columns)
        records: dict[str, SkuRecord] = {}
        empty_keys = 0
        overwritten = 0
        for row in rows:
            key = normalize_key(row.get(mapping[TID], ""))
            if not key:
                empty_keys += 1
                continue
            if key in records:
                overwritten += 1
            records[key] = SkuRecord(
                tid=key,
                sku=row.get(mapping[GME_SKU], "").strip(),
                name=row.get(mapping[POS_NAME], ""),
                condition=row.get(mapping[CONDITION], ""),
                cost=row.get(mapping[COST], ""),
                price_rounded=row.get(mapping[PRICE_ROUNDED], ""),
                price=row.get(mapping[PRICE], ""),
            )
        if empty_keys:
            logger.debug("price list rows without TID skipped: %d", empty_keys)
        if overwritten:
            logger.debug("price list duplicate TIDs replaced: %d", overwritten)
        logger.info("sku index built: %d record(s)", len(records))
        return cls(records)

    def lookup(self, key: object) -> SkuRecord | None:
        return self._records.get(normalize_key(key))

    def __contains__(self, key: object) -> bool:
        return normalize_key(key) in self._records

    def __len__(self) -> int:
        return len(self._records)


def load_price_list(path: Path) -> SkuLookupIndex:
    """Read a comma separated, quote escaped price list and index it.

    Raises:
        PriceListError: file missing or unreadable
        MissingPriceColumnsError: required columns not resolvable
    """
    if not path.exists():
        raise PriceListError(f"price list not found: {path}")
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    except Exception as e:
        raise PriceListError(f"cannot read price list {path.name}: {e}") from e
    columns = [str(c) for c in df.columns]
    rows = [dict(zip(columns, values, strict=True)) for values in df.itertuples(index=False, name=None)]
    return SkuLookupIndex.build(rows, columns)

"""
Mempool prioritization and deterministic block-style layout.

Entries are ranked by fee density and packed into rows that stack from the
bottom of a fixed-size container. The layout depends only on the ranked input
and the container size.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from loguru import logger

from nodepilot import constants
from nodepilot.models import PendingEntry


class SizeClass(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"

    @property
    def side(self) -> float:
        return BOX_SIDES[self]


BOX_SIDES: dict[SizeClass, float] = {
    SizeClass.SMALL: constants.SMALL_BOX_SIDE,
    SizeClass.MEDIUM: constants.MEDIUM_BOX_SIDE,
    SizeClass.LARGE: constants.LARGE_BOX_SIDE,
}


@dataclass(frozen=True)
class PackedEntry:
    entry: PendingEntry
    size_class: SizeClass
    side: float
    x: float  # box centre
    y: float  # box centre, screen coordinates (y grows downward)


def size_class(size: int) -> SizeClass:
    if size < constants.SMALL_TX_MAX_VSIZE:
        return SizeClass.SMALL
    if size < constants.MEDIUM_TX_MAX_VSIZE:
        return SizeClass.MEDIUM
    return SizeClass.LARGE


def rank(
    entries: Iterable[PendingEntry], limit: int | None = constants.MEMPOOL_DISPLAY_LIMIT
) -> list[PendingEntry]:
    """Sort by fee density, highest first, keeping input order for ties."""
    ranked = sorted(entries, key=lambda e: e.fee_density, reverse=True)
    if limit is not None:
        ranked = ranked[:limit]
    return ranked


def pack(entries: Sequence[PendingEntry], width: float, height: float) -> list[PackedEntry]:
    """
    Lay out entries in rows from the bottom of the container upward.

    A row takes entries while their summed box widths fit the container width;
    an entry wider than the container occupies a row of its own. Each row is as
    tall as its tallest box and boxes rest on the row's floor. Rows that do not
    fit below the top edge continue above it (negative y) - nothing is
    shrunk or reflowed.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Container must have positive size, got {width}x{height}")

    rows: list[list[tuple[PendingEntry, SizeClass]]] = []
    current: list[tuple[PendingEntry, SizeClass]] = []
    running_width = 0.0

    for entry in entries:
        cls = size_class(entry.size)
        if current and running_width + cls.side > width:
            rows.append(current)
            current = []
            running_width = 0.0
        current.append((entry, cls))
        running_width += cls.side
    if current:
        rows.append(current)

    packed: list[PackedEntry] = []
    floor_y = height
    for row in rows:
        row_height = max(cls.side for _, cls in row)
        cursor_x = 0.0
        for entry, cls in row:
            packed.append(
                PackedEntry(
                    entry=entry,
                    size_class=cls,
                    side=cls.side,
                    x=cursor_x + cls.side / 2,
                    y=floor_y - cls.side / 2,
                )
            )
            cursor_x += cls.side
        floor_y -= row_height

    if floor_y < 0:
        logger.debug(f"Mempool layout overflows container top by {-floor_y:.1f} units")
    return packed


def layout(
    entries: Iterable[PendingEntry],
    width: float,
    height: float,
    limit: int | None = constants.MEMPOOL_DISPLAY_LIMIT,
) -> list[PackedEntry]:
    return pack(rank(entries, limit), width, height)


def _btc_to_sats(value: Any) -> int:
    return int(round(float(value) * constants.SATS_PER_BTC))


def parse_raw_mempool(result: Any) -> list[PendingEntry]:
    """Convert verbose ``getrawmempool`` output into entries, in node order."""
    if not isinstance(result, dict):
        return []
    entries: list[PendingEntry] = []
    for txid, info in result.items():
        if not isinstance(info, dict):
            continue
        try:
            fees = info.get("fees")
            if isinstance(fees, dict) and "base" in fees:
                fee = _btc_to_sats(fees["base"])
            else:
                fee = _btc_to_sats(info["fee"])
            size = int(info.get("vsize", info.get("size")))
        except (KeyError, TypeError, ValueError):
            logger.debug(f"Skipping malformed mempool entry {txid}")
            continue
        entries.append(PendingEntry(txid=txid, fee=fee, size=size))
    return entries

"""Fixed matatu seat layouts.

Each row is four cells wide. "D" is the driver seat, "E" an empty position
next to the driver, None an unused cell. Integers are sellable seats.
"""

from typing import TypeAlias

Cell: TypeAlias = int | str | None

DRIVER = "D"
EMPTY = "E"

_FRONT_ROW: tuple[Cell, ...] = (DRIVER, EMPTY, EMPTY, EMPTY)


def _rows(capacity: int) -> tuple[tuple[Cell, ...], ...]:
    rows: list[tuple[Cell, ...]] = [_FRONT_ROW]
    seats = list(range(1, capacity + 1))
    for start in range(0, len(seats), 4):
        chunk: list[Cell] = list(seats[start:start + 4])
        chunk.extend([None] * (4 - len(chunk)))
        rows.append(tuple(chunk))
    return tuple(rows)


SEAT_LAYOUTS: dict[int, tuple[tuple[Cell, ...], ...]] = {
    capacity: _rows(capacity) for capacity in (14, 25, 33)
}

SUPPORTED_CAPACITIES = frozenset(SEAT_LAYOUTS)


def layout_for(capacity: int) -> tuple[tuple[Cell, ...], ...]:
    try:
        return SEAT_LAYOUTS[capacity]
    except KeyError:
        raise ValueError(f"Unsupported vehicle capacity: {capacity}") from None


def sellable_seats(capacity: int) -> frozenset[int]:
    """Return the seat numbers that can be sold for a layout."""
    return frozenset(
        cell
        for row in layout_for(capacity)
        for cell in row
        if isinstance(cell, int)
    )

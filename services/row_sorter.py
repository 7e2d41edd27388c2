from dataclasses import replace

from services import layout_settings
from services.models import ROWS

GROUND_FLOOR = 1


def _row_summaries(placed_items, assumptions, floor=GROUND_FLOOR):
    rows = {}
    for entry in placed_items:
        position = entry.grid_position
        if not position or position.floor != floor:
            continue
        summary = rows.setdefault(
            position.row,
            {"row": position.row, "length": 0.0, "has_large": False},
        )
        length = entry.item.length or 0.0
        summary["length"] += length
        if layout_settings.is_large_length(length, assumptions):
            summary["has_large"] = True
    return list(rows.values())


def _select_row_order(rows):
    remaining = sorted(rows, key=lambda summary: (-summary["length"], summary["row"]))
    ordered = []
    while remaining:
        selected = 0
        for idx, candidate in enumerate(remaining):
            if candidate["has_large"]:
                selected = idx
                break
            large_pending = any(
                other["has_large"] for other_idx, other in enumerate(remaining) if other_idx != idx
            )
            if not large_pending:
                selected = idx
                break
        ordered.append(remaining.pop(selected))
    return ordered


def row_mapping(placed_items, assumptions):
    """Old row -> new row, derived from the ground floor.

    A row is a lane through every floor, so one mapping applies to the whole
    stack. Rows empty on the ground floor keep their relative order after the
    occupied ones.
    """
    ground_rows = _select_row_order(_row_summaries(placed_items, assumptions))
    ordered = [summary["row"] for summary in ground_rows]
    ordered.extend(row for row in range(1, ROWS + 1) if row not in ordered)
    return {old_row: new_row for new_row, old_row in enumerate(ordered, start=1)}


def sort_rows(placed_items, assumptions=None):
    """Renumber rows: long-beam lanes first, then by ground-floor occupied length."""
    assumptions = layout_settings.resolve_assumptions(assumptions)
    mapping = row_mapping(placed_items, assumptions)

    reordered = []
    for entry in placed_items:
        position = entry.grid_position
        if position is None or mapping.get(position.row, position.row) == position.row:
            reordered.append(entry)
            continue
        reordered.append(replace(entry, grid_position=replace(position, row=mapping[position.row])))
    return reordered

"""Greedy placement of packages into the floor x row x column cargo grid.

Each call owns a fresh :class:`GridPlacer`, so the occupancy grid and the
per-row length counters never outlive one placement run.
"""

import logging

from services import layout_settings, packager
from services.models import (
    FLOORS,
    MAX_DISPLAY_COLUMNS,
    MAX_GRID_COLUMNS,
    MIN_GRID_COLUMNS,
    ROWS,
    SECTION_FULL,
    GridPosition,
    PlacedItem,
    PlacementResult,
    UnplaceableEntry,
)

logger = logging.getLogger(__name__)

LENGTH_EPSILON = 1e-9
EMPTY_ROW_LENGTH = 0.01
MEDIUM_MIN_LENGTH_M = 2.0
MEDIUM_MAX_RATIO = 0.75
NEAR_MAX_RATIO = 0.85


class PlacementSearchExhausted(Exception):
    pass


def columns_for_lengths(lengths, section_max_length):
    if not section_max_length or section_max_length <= 0:
        return MIN_GRID_COLUMNS
    # Zero lengths count as a full-length package.
    lengths = [length or section_max_length for length in lengths]
    lengths = [length for length in lengths if length > 0]
    if not lengths:
        return MIN_GRID_COLUMNS
    return max(MIN_GRID_COLUMNS, int(section_max_length // min(lengths)))


def compute_columns(packages, section_max_length):
    return columns_for_lengths([pkg.length for pkg in packages], section_max_length)


def grid_cells(columns):
    return FLOORS * ROWS * max(columns, MAX_GRID_COLUMNS)


def packages_per_line_limit(items, section_max_length):
    """Most packages any one item line could ever occupy in this section."""
    columns = columns_for_lengths([item.length for item in items], section_max_length)
    return grid_cells(columns)


def display_columns(columns):
    return max(MIN_GRID_COLUMNS, min(columns, MAX_DISPLAY_COLUMNS))


def attempt_sort_key(package, section_max_length):
    length = package.length or 0.0
    is_medium = MEDIUM_MIN_LENGTH_M <= length < section_max_length * MEDIUM_MAX_RATIO
    near_max = section_max_length * NEAR_MAX_RATIO <= length <= section_max_length
    return (
        not is_medium,
        near_max,
        -round(length, 2),
        not package.uses_large_package,
    )


def attempt_order(packages, section_max_length):
    # sorted() is stable, so equal keys keep packaging order.
    return sorted(packages, key=lambda pkg: attempt_sort_key(pkg, section_max_length))


class GridPlacer:
    def __init__(
        self,
        section_max_length,
        columns=MIN_GRID_COLUMNS,
        large_length_threshold=layout_settings.DEFAULT_LARGE_LENGTH_THRESHOLD_M,
        max_probes=layout_settings.DEFAULT_MAX_PLACEMENT_PROBES,
    ):
        self.section_max_length = float(section_max_length or 0.0)
        self.columns = columns
        self.grid_columns = max(columns, MAX_GRID_COLUMNS)
        self.large_length_threshold = large_length_threshold
        self.max_probes = max_probes
        self.probes = 0
        self.cells = [
            [[None] * self.grid_columns for _ in range(ROWS)] for _ in range(FLOORS)
        ]
        self.row_length_used = [[0.0] * ROWS for _ in range(FLOORS)]

    def _probe(self):
        # Package attempts, row checks and cell checks all spend the budget.
        self.probes += 1
        if self.probes > self.max_probes:
            raise PlacementSearchExhausted()

    def fits_row(self, floor, row, length):
        return self.row_length_used[floor][row] + length <= self.section_max_length + LENGTH_EPSILON

    def is_large(self, package):
        return (package.length or 0.0) >= self.large_length_threshold

    def compatible(self, package, below):
        # Long packages rest on anything; short ones never on long ones.
        if self.is_large(package):
            return True
        return not self.is_large(below)

    def occupy(self, package, floor, row, column):
        self.cells[floor][row][column] = package
        self.row_length_used[floor][row] += package.length or 0.0
        return GridPosition(floor=floor + 1, row=row + 1, column=column + 1)

    def direct_support(self, floor, row, column):
        for below in range(floor - 1, -1, -1):
            occupant = self.cells[below][row][column]
            if occupant is not None:
                return occupant
        return None

    def row_supports(self, floor, row):
        for below in range(floor - 1, -1, -1):
            for column in range(self.grid_columns):
                occupant = self.cells[below][row][column]
                if occupant is not None:
                    yield occupant

    def strict_support(self, floor, row, column):
        support = self.direct_support(floor, row, column)
        if support is not None:
            return support
        return next(self.row_supports(floor, row), None)

    def _ground_floor_rows(self, length):
        candidates = []
        for row in range(ROWS):
            self._probe()
            used = self.row_length_used[0][row]
            if not self.fits_row(0, row, length):
                continue
            remaining = self.section_max_length - used
            is_empty = used < EMPTY_ROW_LENGTH
            candidates.append((not is_empty, remaining, row))
        # Empty rows first, then the tightest row that still fits.
        candidates.sort()
        return [row for _, __, row in candidates]

    def _place_on_ground_floor(self, package):
        length = package.length or 0.0
        for row in self._ground_floor_rows(length):
            for column in range(self.grid_columns):
                self._probe()
                if self.cells[0][row][column] is None:
                    return self.occupy(package, 0, row, column)
        return None

    def _place_on_upper_floors(self, package):
        length = package.length or 0.0
        for floor in range(1, FLOORS):
            for row in range(ROWS):
                self._probe()
                if not self.fits_row(floor, row, length):
                    continue
                for column in range(self.grid_columns):
                    self._probe()
                    if self.cells[floor][row][column] is not None:
                        continue
                    support = self.strict_support(floor, row, column)
                    if support is None or not self.compatible(package, support):
                        continue
                    return self.occupy(package, floor, row, column)
        return None

    def place_strict(self, package):
        position = self._place_on_ground_floor(package)
        if position is None:
            position = self._place_on_upper_floors(package)
        return position

    def _fallback_supported(self, package, floor, row, column):
        direct = self.direct_support(floor, row, column)
        if direct is not None:
            return self.compatible(package, direct)
        return any(self.compatible(package, below) for below in self.row_supports(floor, row))

    def place_fallback(self, package):
        length = package.length or 0.0
        for floor in range(FLOORS):
            for row in range(ROWS):
                self._probe()
                if not self.fits_row(floor, row, length):
                    continue
                for column in range(self.grid_columns):
                    self._probe()
                    if self.cells[floor][row][column] is not None:
                        continue
                    if floor > 0 and not self._fallback_supported(package, floor, row, column):
                        continue
                    return self.occupy(package, floor, row, column)
        return None

    def place_package(self, package):
        self._probe()
        position = self.place_strict(package)
        if position is None:
            position = self.place_fallback(package)
        return position


def _unplaced_reason(length, section_max_length, search_exhausted):
    if length > section_max_length + LENGTH_EPSILON:
        return (
            f"Longer than the available length ({length:.2f} m > "
            f"{section_max_length:.2f} m)."
        )
    if search_exhausted:
        return "Placement search limit reached before this package could be placed."
    return "No free position left in the cargo grid."


def place(packages, section_max_length, assumptions=None, section=SECTION_FULL):
    assumptions = layout_settings.resolve_assumptions(assumptions)
    columns = compute_columns(packages, section_max_length)
    placer = GridPlacer(
        section_max_length,
        columns=columns,
        large_length_threshold=assumptions["large_length_threshold_m"],
        max_probes=assumptions["max_placement_probes"],
    )

    positions_by_line = {}
    search_exhausted = False
    for package in attempt_order(packages, placer.section_max_length):
        try:
            position = placer.place_package(package)
        except PlacementSearchExhausted:
            search_exhausted = True
            logger.warning(
                "Placement search limit of %s probes reached; remaining packages left unplaced.",
                placer.max_probes,
            )
            break
        if position is not None:
            positions_by_line.setdefault(package.line, []).append(position)

    lines = {}
    for package in packages:
        lines.setdefault(package.line, package.item)

    result = PlacementResult(columns=columns, search_exhausted=search_exhausted)
    for line in sorted(lines):
        item = lines[line]
        size = layout_settings.package_size_for(item.length, assumptions)
        placed_units = 0
        for index, position in enumerate(positions_by_line.get(line, [])):
            units = packager.units_in_package(item.quantity, size, index)
            placed_units += units
            result.placed.append(
                PlacedItem(item=item, quantity=units, grid_position=position, section=section)
            )
        remaining = item.quantity - placed_units
        if remaining > 0:
            result.unplaced.append(
                PlacedItem(item=item, quantity=remaining, grid_position=None, section=section)
            )
            result.unplaceable.append(
                UnplaceableEntry(
                    product_id=item.product_id,
                    name=item.name,
                    quantity=remaining,
                    reason=_unplaced_reason(
                        item.length or 0.0, placer.section_max_length, search_exhausted
                    ),
                    section=section,
                )
            )

    logger.debug(
        "Placed %s of %s packages in section %s (%s columns, %s probes).",
        sum(len(positions) for positions in positions_by_line.values()),
        len(packages),
        section,
        columns,
        placer.probes,
    )
    return result

from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

FLOORS = 4
ROWS = 3
MIN_GRID_COLUMNS = 3
MAX_GRID_COLUMNS = 50
MAX_DISPLAY_COLUMNS = 20
UNSET_POSITION = 999

SECTION_FULL = "full"
SECTION_A = "a"
SECTION_B = "b"


class InvalidInputError(ValueError):
    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = errors or {}


@dataclass(frozen=True)
class Item:
    product_id: str
    name: str
    quantity: int
    length: float = 0.0
    weight: float = 0.0
    position: Optional[int] = None

    @property
    def sort_position(self):
        return UNSET_POSITION if self.position is None else self.position

    @property
    def total_weight(self):
        return self.weight * self.quantity

    def with_quantity(self, quantity):
        return replace(self, quantity=quantity)


@dataclass(frozen=True)
class Package:
    item: Item
    units: int
    length: float
    uses_large_package: bool
    index: int = 0
    line: int = 0


@dataclass(frozen=True)
class GridPosition:
    floor: int
    row: int
    column: int

    def to_dict(self):
        return {"floor": self.floor, "row": self.row, "column": self.column}


@dataclass(frozen=True)
class PlacedItem:
    item: Item
    quantity: int
    grid_position: Optional[GridPosition] = None
    section: str = SECTION_FULL

    @property
    def is_placed(self):
        return self.grid_position is not None

    @property
    def weight(self):
        return self.item.weight * self.quantity

    def to_dict(self):
        return {
            "product_id": self.item.product_id,
            "name": self.item.name,
            "quantity": self.quantity,
            "unit_length": self.item.length,
            "unit_weight": self.item.weight,
            "section": self.section,
            "grid_position": self.grid_position.to_dict() if self.grid_position else None,
        }


@dataclass(frozen=True)
class UnplaceableEntry:
    product_id: str
    name: str
    quantity: int
    reason: str
    section: Optional[str] = None

    def to_dict(self):
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": self.quantity,
            "reason": self.reason,
            "section": self.section,
        }


@dataclass(frozen=True)
class Vehicle:
    name: str
    kind: str
    section_lengths: Tuple[float, ...]
    section_weight_caps: Tuple[Optional[float], ...] = ()
    truck_type: Optional[str] = None

    @property
    def is_dual(self):
        return self.kind == "dual"

    @property
    def total_length(self):
        return sum(self.section_lengths)

    @property
    def max_weight(self):
        caps = [cap for cap in self.section_weight_caps if cap]
        if not caps or len(caps) != len(self.section_lengths):
            return None
        return sum(caps)

    def weight_cap(self, index):
        if index >= len(self.section_weight_caps):
            return None
        return self.section_weight_caps[index] or None

    def to_dict(self):
        return {
            "name": self.name,
            "kind": self.kind,
            "truck_type": self.truck_type,
            "section_lengths": list(self.section_lengths),
            "section_weight_caps": list(self.section_weight_caps),
            "total_length": self.total_length,
            "max_weight": self.max_weight,
        }


@dataclass
class PlacementResult:
    placed: list = field(default_factory=list)
    unplaced: list = field(default_factory=list)
    columns: int = MIN_GRID_COLUMNS
    search_exhausted: bool = False
    unplaceable: list = field(default_factory=list)

    @property
    def items(self):
        return self.placed + self.unplaced


@dataclass
class SectionLayout:
    key: str
    label: str
    max_length: float
    max_weight: Optional[float]
    columns: int
    placed_items: list = field(default_factory=list)

    @property
    def weight(self):
        return sum(entry.weight for entry in self.placed_items if entry.is_placed)

    def grid(self, prefix=""):
        cells = {}
        for entry in self.placed_items:
            if not entry.grid_position:
                continue
            pos = entry.grid_position
            key = f"{pos.floor}-{pos.row}-{pos.column}"
            if prefix:
                key = f"{prefix}-{key}"
            cells.setdefault(key, []).append(entry.to_dict())
        return cells

    def to_dict(self):
        prefix = "" if self.key == SECTION_FULL else self.key
        return {
            "key": self.key,
            "label": self.label,
            "max_length": self.max_length,
            "max_weight": self.max_weight,
            "columns": self.columns,
            "weight_kg": round(self.weight, 3),
            "placed_items": [entry.to_dict() for entry in self.placed_items],
            "grid": self.grid(prefix),
        }


@dataclass
class LoadLayout:
    vehicle: Vehicle
    sections: list = field(default_factory=list)
    unplaceable: list = field(default_factory=list)
    warnings: list = field(default_factory=list)
    totals: dict = field(default_factory=dict)

    @property
    def placed_items(self):
        entries = []
        for section in self.sections:
            entries.extend(section.placed_items)
        return entries

    @property
    def unplaced_quantity(self):
        return sum(entry.quantity for entry in self.unplaceable)

    def to_dict(self):
        return {
            "vehicle": self.vehicle.to_dict(),
            "sections": [section.to_dict() for section in self.sections],
            "placed_items": [entry.to_dict() for entry in self.placed_items],
            "unplaceable": [entry.to_dict() for entry in self.unplaceable],
            "warnings": list(self.warnings),
            "totals": dict(self.totals),
        }

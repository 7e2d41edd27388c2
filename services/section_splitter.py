import logging
from dataclasses import dataclass, field, replace
from typing import Optional

from services import grid_placer, packager
from services.models import SECTION_A, SECTION_B, PlacementResult, UnplaceableEntry

logger = logging.getLogger(__name__)

FITS_A_ONLY = "a_only"
FITS_B_ONLY = "b_only"
FITS_BOTH = "both"
FITS_NONE = "none"


@dataclass
class SectionSplit:
    section_a: list = field(default_factory=list)
    section_b: list = field(default_factory=list)
    unplaceable: list = field(default_factory=list)
    placement_a: Optional[PlacementResult] = None


def merge_product_lines(items):
    """Collapse lines of the same product into one item carrying the total quantity."""
    merged = {}
    order = []
    for item in packager.sort_by_position(items):
        current = merged.get(item.product_id)
        if current is None:
            merged[item.product_id] = item
            order.append(item.product_id)
            continue
        merged[item.product_id] = replace(current, quantity=current.quantity + item.quantity)
    return [merged[product_id] for product_id in order]


def classify_fit(item, section_a_length, section_b_length):
    length = item.length or 0.0
    fits_a = length <= section_a_length
    fits_b = length <= section_b_length
    if fits_a and fits_b:
        return FITS_BOTH
    if fits_a:
        return FITS_A_ONLY
    if fits_b:
        return FITS_B_ONLY
    return FITS_NONE


def placed_quantity_by_product(placed_items):
    totals = {}
    for entry in placed_items:
        if entry.grid_position is None:
            continue
        product_id = entry.item.product_id
        totals[product_id] = totals.get(product_id, 0) + entry.quantity
    return totals


def _does_not_fit_reason(item, section_a_length, section_b_length, fit):
    length = item.length or 0.0
    if fit == FITS_NONE:
        return (
            f"Does not fit in either section (length {length:.2f} m > "
            f"{max(section_a_length, section_b_length):.2f} m)."
        )
    return (
        f"Does not fit in section B (length {length:.2f} m > {section_b_length:.2f} m) "
        "and section A is full."
    )


def split(items, section_a_length, section_b_length, assumptions=None):
    """Allocate items between the primary section (A) and the secondary one (B).

    Section A is filled first with everything that fits it; whatever the
    placer could not fit there moves to B when B is long enough, otherwise
    it is reported as unplaceable. The section A placement is kept on the
    result so callers can reuse it when the allocation does not change.
    """
    source_items = merge_product_lines(items)
    fits = {
        item.product_id: classify_fit(item, section_a_length, section_b_length)
        for item in source_items
    }

    candidates_a = [
        item for item in source_items if fits[item.product_id] in (FITS_A_ONLY, FITS_BOTH)
    ]
    placement_a = grid_placer.place(
        packager.package_items(
            candidates_a,
            assumptions,
            max_packages_per_line=grid_placer.packages_per_line_limit(
                candidates_a, section_a_length
            ),
        ),
        section_a_length,
        assumptions,
        section=SECTION_A,
    )
    placed_in_a = placed_quantity_by_product(placement_a.placed)

    result = SectionSplit(placement_a=placement_a)
    for item in source_items:
        fit = fits[item.product_id]
        quantity_a = placed_in_a.get(item.product_id, 0) if fit in (FITS_A_ONLY, FITS_BOTH) else 0
        remainder = item.quantity - quantity_a
        if quantity_a > 0:
            result.section_a.append(item.with_quantity(quantity_a))
        if remainder <= 0:
            continue
        if fit in (FITS_BOTH, FITS_B_ONLY):
            result.section_b.append(item.with_quantity(remainder))
        else:
            result.unplaceable.append(
                UnplaceableEntry(
                    product_id=item.product_id,
                    name=item.name,
                    quantity=remainder,
                    reason=_does_not_fit_reason(item, section_a_length, section_b_length, fit),
                    section=SECTION_B if fit == FITS_A_ONLY else None,
                )
            )

    logger.debug(
        "Section split: %s units in A, %s units in B, %s units unplaceable.",
        sum(item.quantity for item in result.section_a),
        sum(item.quantity for item in result.section_b),
        sum(entry.quantity for entry in result.unplaceable),
    )
    return result

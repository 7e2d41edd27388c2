import logging
import math
from dataclasses import dataclass, field

from services.models import UnplaceableEntry
from services.section_splitter import (
    FITS_A_ONLY,
    FITS_B_ONLY,
    FITS_BOTH,
    classify_fit,
    merge_product_lines,
)

logger = logging.getLogger(__name__)

WEIGHT_EPSILON = 1e-6


@dataclass
class RebalanceResult:
    section_a: list = field(default_factory=list)
    section_b: list = field(default_factory=list)
    dropped: list = field(default_factory=list)
    weight_a: float = 0.0
    weight_b: float = 0.0
    within_caps: bool = True


def section_weight(items):
    return sum((item.weight or 0.0) * item.quantity for item in items)


def exceeds_cap(weight, cap):
    return bool(cap) and weight > cap + WEIGHT_EPSILON


def needs_rebalance(section_a, section_b, max_weight_a, max_weight_b):
    return exceeds_cap(section_weight(section_a), max_weight_a) or exceeds_cap(
        section_weight(section_b), max_weight_b
    )


def _remaining_capacity(cap, used):
    if not cap:
        return math.inf
    return max(cap - used, 0.0)


def _fits(cap, used, weight):
    return not cap or used + weight <= cap + WEIGHT_EPSILON


def _units_within(available, unit_weight, quantity):
    if available == math.inf:
        return quantity
    return min(int((available + WEIGHT_EPSILON) // unit_weight), quantity)


def rebalance(
    section_a,
    section_b,
    max_weight_a,
    max_weight_b,
    section_lengths,
    source_items=None,
):
    """Re-partition items between two sections to respect their weight caps.

    One corrective pass only: the result may still be over a cap, which the
    caller reports as a warning. Units that neither section can absorb are
    returned in ``dropped``.
    """
    section_a_length, section_b_length = section_lengths
    totals = merge_product_lines(
        source_items if source_items is not None else list(section_a) + list(section_b)
    )

    result = RebalanceResult()
    both = []
    for item in totals:
        fit = classify_fit(item, section_a_length, section_b_length)
        if fit == FITS_A_ONLY:
            result.section_a.append(item)
        elif fit == FITS_B_ONLY:
            result.section_b.append(item)
        elif fit == FITS_BOTH:
            both.append(item)

    weight_a = section_weight(result.section_a)
    weight_b = section_weight(result.section_b)

    for item in sorted(both, key=lambda entry: entry.total_weight, reverse=True):
        item_weight = item.total_weight
        unit_weight = item.weight or 0.0
        if unit_weight <= 0:
            result.section_a.append(item)
            continue
        if _fits(max_weight_a, weight_a, item_weight):
            result.section_a.append(item)
            weight_a += item_weight
            continue
        if _fits(max_weight_b, weight_b, item_weight):
            result.section_b.append(item)
            weight_b += item_weight
            continue

        qty_a = _units_within(_remaining_capacity(max_weight_a, weight_a), unit_weight, item.quantity)
        if qty_a > 0:
            result.section_a.append(item.with_quantity(qty_a))
            weight_a += unit_weight * qty_a
        remaining = item.quantity - qty_a
        qty_b = _units_within(_remaining_capacity(max_weight_b, weight_b), unit_weight, remaining)
        if qty_b > 0:
            result.section_b.append(item.with_quantity(qty_b))
            weight_b += unit_weight * qty_b
        leftover = remaining - qty_b
        if leftover > 0:
            result.dropped.append(
                UnplaceableEntry(
                    product_id=item.product_id,
                    name=item.name,
                    quantity=leftover,
                    reason=(
                        f"Exceeds the remaining weight capacity of both sections "
                        f"({unit_weight * leftover:.1f} kg left over)."
                    ),
                )
            )

    result.weight_a = weight_a
    result.weight_b = weight_b
    result.within_caps = not (
        exceeds_cap(weight_a, max_weight_a) or exceeds_cap(weight_b, max_weight_b)
    )
    if not result.within_caps:
        logger.warning(
            "Weight rebalance could not meet caps: A %.1f/%s kg, B %.1f/%s kg.",
            weight_a,
            max_weight_a,
            weight_b,
            max_weight_b,
        )
    return result

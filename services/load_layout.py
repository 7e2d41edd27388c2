"""Load layout entry point: items + vehicle in, placed grid + report out."""

import logging

from services import (
    grid_placer,
    items as item_service,
    layout_settings,
    packager,
    row_sorter,
    section_splitter,
    totals,
    vehicles,
    weight_rebalancer,
)
from services.models import (
    SECTION_A,
    SECTION_B,
    SECTION_FULL,
    InvalidInputError,
    LoadLayout,
    SectionLayout,
)

logger = logging.getLogger(__name__)


def _warning_payload(code, message, section=None):
    payload = {"code": code, "message": message, "severity": "warning"}
    if section:
        payload["section"] = section
    return payload


def _require_section_lengths(vehicle, items):
    if not items:
        return
    errors = {}
    for idx, length in enumerate(vehicle.section_lengths):
        if not length or length <= 0:
            errors[f"section_lengths[{idx}]"] = "Section length must be greater than zero."
    if errors:
        raise InvalidInputError("Vehicle sections need a positive length to place items.", errors)


def _place_section(items, max_length, assumptions, section):
    limit = grid_placer.packages_per_line_limit(items, max_length)
    placement = grid_placer.place(
        packager.package_items(items, assumptions, max_packages_per_line=limit),
        max_length,
        assumptions,
        section=section,
    )
    placed_items = row_sorter.sort_rows(placement.items, assumptions)
    return placement, placed_items


def _section_layout(vehicle, index, key, placement, placed_items):
    return SectionLayout(
        key=key,
        label=vehicles.section_label(vehicle, index),
        max_length=vehicle.section_lengths[index],
        max_weight=vehicle.weight_cap(index),
        columns=grid_placer.display_columns(placement.columns),
        placed_items=placed_items,
    )


def _search_limit_warnings(placements):
    warnings = []
    for section, placement in placements:
        if placement.search_exhausted:
            warnings.append(
                _warning_payload(
                    "PLACEMENT_SEARCH_LIMIT",
                    "Placement search limit reached; remaining packages were left unplaced.",
                    section=section,
                )
            )
    return warnings


def _single_section_layout(items, vehicle, assumptions):
    placement, placed_items = _place_section(
        items, vehicle.section_lengths[0], assumptions, SECTION_FULL
    )
    section = _section_layout(vehicle, 0, SECTION_FULL, placement, placed_items)
    warnings = _search_limit_warnings([(SECTION_FULL, placement)])
    return [section], list(placement.unplaceable), warnings


def _dual_section_layout(items, vehicle, assumptions):
    length_a, length_b = vehicle.section_lengths
    cap_a, cap_b = vehicle.weight_cap(0), vehicle.weight_cap(1)
    warnings = []

    split = section_splitter.split(items, length_a, length_b, assumptions)
    items_a, items_b = split.section_a, split.section_b
    unplaceable = list(split.unplaceable)

    rebalanced = None
    if weight_rebalancer.needs_rebalance(items_a, items_b, cap_a, cap_b):
        logger.info("Section weights exceed caps; attempting a rebalance pass.")
        rebalanced = weight_rebalancer.rebalance(
            items_a,
            items_b,
            cap_a,
            cap_b,
            (length_a, length_b),
            source_items=items,
        )
        items_a, items_b = rebalanced.section_a, rebalanced.section_b
        # Items that fit neither section are not part of the rebalance pass.
        misfit_ids = {
            item.product_id
            for item in section_splitter.merge_product_lines(items)
            if section_splitter.classify_fit(item, length_a, length_b)
            == section_splitter.FITS_NONE
        }
        unplaceable = [entry for entry in unplaceable if entry.product_id in misfit_ids]
        unplaceable.extend(rebalanced.dropped)
        if not rebalanced.within_caps:
            warnings.append(
                _warning_payload(
                    "REBALANCE_BEST_EFFORT",
                    (
                        f"Weight rebalance could not bring both sections under their caps "
                        f"(A {rebalanced.weight_a:.1f} kg, B {rebalanced.weight_b:.1f} kg)."
                    ),
                )
            )

    if rebalanced is None:
        # Section A holds exactly what the split placed there.
        placement_a = split.placement_a
        placed_a = row_sorter.sort_rows(placement_a.placed, assumptions)
    else:
        placement_a, placed_a = _place_section(items_a, length_a, assumptions, SECTION_A)
        unplaceable.extend(placement_a.unplaceable)
    placement_b, placed_b = _place_section(items_b, length_b, assumptions, SECTION_B)
    unplaceable.extend(placement_b.unplaceable)
    warnings.extend(
        _search_limit_warnings([(SECTION_A, placement_a), (SECTION_B, placement_b)])
    )

    sections = [
        _section_layout(vehicle, 0, SECTION_A, placement_a, placed_a),
        _section_layout(vehicle, 1, SECTION_B, placement_b, placed_b),
    ]
    return sections, unplaceable, warnings


def _capacity_warnings(layout):
    warnings = []
    for section in layout.sections:
        weight = section.weight
        if not weight_rebalancer.exceeds_cap(weight, section.max_weight):
            continue
        code = "VEHICLE_OVERWEIGHT" if section.key == SECTION_FULL else "SECTION_OVERWEIGHT"
        warnings.append(
            _warning_payload(
                code,
                (
                    f"{section.label} weight is {weight:.1f} kg, above the maximum "
                    f"of {section.max_weight:.1f} kg."
                ),
                section=section.key,
            )
        )
    if layout.unplaceable:
        warnings.append(
            _warning_payload(
                "UNITS_NOT_PLACED",
                f"{layout.unplaced_quantity} unit(s) could not be placed on the vehicle.",
            )
        )
    return warnings


def calculate_load_layout(items, vehicle, assumptions=None):
    """Place every package of ``items`` on ``vehicle``.

    Raises :class:`InvalidInputError` for malformed input; everything else
    (unplaced units, weight overruns) comes back as data in the layout.
    """
    assumptions = layout_settings.resolve_assumptions(assumptions)
    vehicle = vehicles.resolve_vehicle(vehicle)
    items = item_service.parse_items(items)
    _require_section_lengths(vehicle, items)

    if vehicle.is_dual:
        sections, unplaceable, warnings = _dual_section_layout(items, vehicle, assumptions)
    else:
        sections, unplaceable, warnings = _single_section_layout(items, vehicle, assumptions)

    layout = LoadLayout(
        vehicle=vehicle,
        sections=sections,
        unplaceable=unplaceable,
        warnings=warnings,
    )
    layout.warnings.extend(_capacity_warnings(layout))
    layout.totals = totals.calculate_layout_totals(items, layout)

    if layout.unplaceable:
        logger.warning(
            "%s unit(s) left unplaced on vehicle %s.",
            layout.unplaced_quantity,
            vehicle.name,
        )
    logger.debug(
        "Layout for %s: %s placed packages, %s warnings.",
        vehicle.name,
        layout.totals.get("placed_packages"),
        len(layout.warnings),
    )
    return layout

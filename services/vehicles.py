from services import validation
from services.models import InvalidInputError, Vehicle

KIND_SINGLE = "single"
KIND_DUAL = "dual"

# Truck record types: a rigid truck or a semi has one cargo bed, a truck with
# trailer ("equipo") has two independently loaded sections.
TRUCK_TYPE_KINDS = {
    "CHASIS": KIND_SINGLE,
    "SEMI": KIND_SINGLE,
    "EQUIPO": KIND_DUAL,
}
SECTION_LABELS = {
    KIND_SINGLE: ("Cargo bed",),
    KIND_DUAL: ("Chassis", "Trailer"),
}
KG_PER_TONNE = 1000.0


def _as_list(value):
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _weight_factor(raw, default_unit):
    unit = str(raw.get("weight_unit") or default_unit).strip().lower()
    if unit in {"t", "tn", "ton", "tonne", "tonnes"}:
        return KG_PER_TONNE
    return 1.0


def _coerce_cap(value, factor, field_name, errors):
    if value is None or value == "":
        return None
    validation.validate_optional_non_negative_float(value, field_name, errors)
    if field_name in errors:
        return None
    parsed = validation.parse_number(value)
    return parsed * factor if parsed else None


def _lengths_and_caps_from_truck(raw, kind):
    if kind == KIND_DUAL:
        lengths = [raw.get("chasis_length"), raw.get("acoplado_length")]
        caps = [raw.get("chasis_weight"), raw.get("acoplado_weight")]
        return lengths, caps
    return [raw.get("length")], [raw.get("max_weight")]


def resolve_vehicle(raw):
    """Build a :class:`Vehicle` from a descriptor or a stored truck record."""
    if isinstance(raw, Vehicle):
        return raw
    if not isinstance(raw, dict):
        raise InvalidInputError("Vehicle is required.", {"vehicle": "Vehicle is required."})

    errors = {}
    truck_type = str(raw.get("type") or "").strip().upper() or None
    if truck_type:
        if truck_type not in TRUCK_TYPE_KINDS:
            errors["type"] = "Truck type must be one of CHASIS, EQUIPO or SEMI."
            raise InvalidInputError("Invalid vehicle.", errors)
        kind = TRUCK_TYPE_KINDS[truck_type]
        lengths, caps = _lengths_and_caps_from_truck(raw, kind)
    else:
        kind = str(raw.get("kind") or KIND_SINGLE).strip().lower()
        if kind not in SECTION_LABELS:
            errors["kind"] = "Vehicle kind must be 'single' or 'dual'."
            raise InvalidInputError("Invalid vehicle.", errors)
        lengths = _as_list(raw.get("section_lengths"))
        caps = _as_list(raw.get("section_weight_caps"))

    expected = len(SECTION_LABELS[kind])
    if len(lengths) != expected:
        errors["section_lengths"] = f"Expected {expected} section length(s)."
        raise InvalidInputError("Invalid vehicle.", errors)
    if caps and len(caps) != expected:
        errors["section_weight_caps"] = f"Expected {expected} section weight cap(s)."
        raise InvalidInputError("Invalid vehicle.", errors)

    parsed_lengths = []
    for idx, value in enumerate(lengths):
        field_name = f"section_lengths[{idx}]"
        validation.validate_required(value, field_name, errors)
        validation.validate_optional_non_negative_float(value, field_name, errors)
        if field_name not in errors:
            parsed_lengths.append(validation.parse_number(value))

    # Stored truck records carry their weights in tonnes.
    factor = _weight_factor(raw, "t" if truck_type else "kg")
    parsed_caps = tuple(
        _coerce_cap(value, factor, f"section_weight_caps[{idx}]", errors)
        for idx, value in enumerate(caps)
    )
    if errors:
        raise InvalidInputError("Invalid vehicle.", errors)

    return Vehicle(
        name=str(raw.get("name") or truck_type or kind).strip(),
        kind=kind,
        section_lengths=tuple(parsed_lengths),
        section_weight_caps=parsed_caps or (None,) * expected,
        truck_type=truck_type,
    )


def section_label(vehicle, index):
    return SECTION_LABELS[vehicle.kind][index]

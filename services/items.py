from services import validation
from services.models import InvalidInputError, Item

PRODUCT_ID_KEYS = ("product_id", "productId", "id")
NAME_KEYS = ("name", "product_name", "productName")


def _first_value(raw, keys):
    for key in keys:
        value = raw.get(key)
        if value is not None and str(value).strip() != "":
            return value
    return None


def _clean_text(value):
    if value is None:
        return ""
    return str(value).strip()


def _optional_float(value):
    parsed = validation.parse_number(value) if value not in (None, "") else None
    return parsed or 0.0


def parse_item(raw, errors, prefix="item"):
    if isinstance(raw, Item):
        if raw.quantity <= 0:
            errors[f"{prefix}.quantity"] = "Quantity must be a positive whole number."
            return None
        if (raw.length or 0) < 0 or (raw.weight or 0) < 0:
            errors[prefix] = "Length and weight must be zero or positive numbers."
            return None
        return raw
    if not isinstance(raw, dict):
        errors[prefix] = "Item must be an object."
        return None

    line_errors = {}
    product_id = _first_value(raw, PRODUCT_ID_KEYS)
    validation.validate_required(product_id, "product_id", line_errors)
    validation.validate_positive_int(raw.get("quantity"), "quantity", line_errors)
    validation.validate_optional_non_negative_float(raw.get("length"), "length", line_errors)
    validation.validate_optional_non_negative_float(raw.get("weight"), "weight", line_errors)
    validation.validate_optional_int(raw.get("position"), "position", line_errors)
    if line_errors:
        for field_name, message in line_errors.items():
            errors[f"{prefix}.{field_name}"] = message
        return None

    position = raw.get("position")
    product_id = _clean_text(product_id)
    return Item(
        product_id=product_id,
        name=_clean_text(_first_value(raw, NAME_KEYS)) or product_id,
        quantity=int(validation.parse_number(raw.get("quantity"))),
        length=_optional_float(raw.get("length")),
        weight=_optional_float(raw.get("weight")),
        position=None if position in (None, "") else int(validation.parse_number(position)),
    )


def parse_items(raw_items):
    if raw_items is None:
        return []
    if not isinstance(raw_items, (list, tuple)):
        raise InvalidInputError("Items must be a list.", {"items": "Items must be a list."})

    errors = {}
    items = []
    for idx, raw in enumerate(raw_items):
        item = parse_item(raw, errors, prefix=f"items[{idx}]")
        if item is not None:
            items.append(item)
    if errors:
        raise InvalidInputError("One or more items are invalid.", errors)
    return items

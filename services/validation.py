import math


def _label(field_name):
    return field_name.replace("_", " ").title()


def _is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def parse_number(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        parsed = float(value)
    else:
        try:
            parsed = float(str(value).strip().replace(",", "."))
        except (TypeError, ValueError):
            return None
    return parsed if math.isfinite(parsed) else None


def validate_required(value, field_name, errors):
    if _is_blank(value):
        errors[field_name] = f"{_label(field_name)} is required."


def validate_positive_int(value, field_name, errors):
    if _is_blank(value):
        errors[field_name] = f"{_label(field_name)} is required."
        return
    parsed = parse_number(value)
    if parsed is None or parsed <= 0 or parsed != int(parsed):
        errors[field_name] = f"{_label(field_name)} must be a positive whole number."


def validate_optional_non_negative_float(value, field_name, errors):
    if _is_blank(value):
        return
    parsed = parse_number(value)
    if parsed is None or parsed < 0:
        errors[field_name] = f"{_label(field_name)} must be zero or a positive number."


def validate_optional_int(value, field_name, errors):
    if _is_blank(value):
        return
    parsed = parse_number(value)
    if parsed is None or parsed != int(parsed):
        errors[field_name] = f"{_label(field_name)} must be a whole number."

import json
import time

import db

LAYOUT_DEFAULTS_SETTING_KEY = "layout_defaults"
DEFAULT_LARGE_LENGTH_THRESHOLD_M = 5.80
DEFAULT_PACKAGE_SIZE_LARGE = 10
DEFAULT_PACKAGE_SIZE_SMALL = 20
DEFAULT_MAX_PLACEMENT_PROBES = 2_000_000
CACHE_TTL_SEC = 30.0

_LAYOUT_ASSUMPTIONS_CACHE = {
    "assumptions": None,
    "expires_at": 0.0,
}


def default_layout_assumptions():
    return {
        "large_length_threshold_m": DEFAULT_LARGE_LENGTH_THRESHOLD_M,
        "package_size_large": DEFAULT_PACKAGE_SIZE_LARGE,
        "package_size_small": DEFAULT_PACKAGE_SIZE_SMALL,
        "max_placement_probes": DEFAULT_MAX_PLACEMENT_PROBES,
    }


def _coerce_positive_int(value, default):
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return int(default)
    return parsed if parsed > 0 else int(default)


def _coerce_positive_float(value, default):
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return float(default)
    return parsed if parsed > 0 else float(default)


def normalize_layout_assumptions(raw_value):
    defaults = default_layout_assumptions()
    if not isinstance(raw_value, dict):
        return defaults

    large = _coerce_positive_int(
        raw_value.get("package_size_large"), defaults["package_size_large"]
    )
    small = _coerce_positive_int(
        raw_value.get("package_size_small"), defaults["package_size_small"]
    )
    # Long beams travel in smaller bundles than short ones.
    if large >= small:
        large, small = defaults["package_size_large"], defaults["package_size_small"]

    return {
        "large_length_threshold_m": round(
            _coerce_positive_float(
                raw_value.get("large_length_threshold_m"),
                defaults["large_length_threshold_m"],
            ),
            3,
        ),
        "package_size_large": large,
        "package_size_small": small,
        "max_placement_probes": _coerce_positive_int(
            raw_value.get("max_placement_probes"),
            defaults["max_placement_probes"],
        ),
    }


def invalidate_layout_assumptions_cache():
    _LAYOUT_ASSUMPTIONS_CACHE["expires_at"] = 0.0


def get_layout_assumptions(force_refresh=False):
    now = time.time()
    if force_refresh:
        invalidate_layout_assumptions_cache()
    cached = _LAYOUT_ASSUMPTIONS_CACHE["assumptions"]
    if cached is not None and _LAYOUT_ASSUMPTIONS_CACHE["expires_at"] > now:
        return dict(cached)

    assumptions = default_layout_assumptions()
    setting = db.get_planning_setting(LAYOUT_DEFAULTS_SETTING_KEY) or {}
    raw_text = (setting.get("value_json") or "").strip()
    if raw_text:
        try:
            parsed = json.loads(raw_text)
        except json.JSONDecodeError:
            parsed = None
        assumptions = normalize_layout_assumptions(parsed)

    _LAYOUT_ASSUMPTIONS_CACHE["assumptions"] = dict(assumptions)
    _LAYOUT_ASSUMPTIONS_CACHE["expires_at"] = now + CACHE_TTL_SEC
    return dict(assumptions)


def save_layout_assumptions(raw_value):
    assumptions = normalize_layout_assumptions(raw_value)
    db.upsert_planning_setting(LAYOUT_DEFAULTS_SETTING_KEY, json.dumps(assumptions))
    invalidate_layout_assumptions_cache()
    return assumptions


def resolve_assumptions(assumptions=None):
    if assumptions is None:
        return get_layout_assumptions()
    merged = default_layout_assumptions()
    merged.update(assumptions)
    return normalize_layout_assumptions(merged)


def is_large_length(length, assumptions):
    return (length or 0.0) >= assumptions["large_length_threshold_m"]


def package_size_for(length, assumptions):
    if is_large_length(length, assumptions):
        return assumptions["package_size_large"]
    return assumptions["package_size_small"]

def calculate_item_total_length(item):
    return (item.length or 0.0) * (item.quantity or 0)


def calculate_item_total_weight(item):
    return (item.weight or 0.0) * (item.quantity or 0)


def calculate_item_totals(items):
    return {
        "total_lines": len(items),
        "total_units": sum(item.quantity or 0 for item in items),
        "total_length_m": round(sum(calculate_item_total_length(item) for item in items), 3),
        "total_weight_kg": round(sum(calculate_item_total_weight(item) for item in items), 3),
    }


def weight_utilization_pct(weight_kg, max_weight_kg):
    if not max_weight_kg:
        return None
    return round((weight_kg / max_weight_kg) * 100, 1)


def calculate_layout_totals(items, layout):
    totals = calculate_item_totals(items)
    placed = [entry for entry in layout.placed_items if entry.is_placed]
    placed_weight = sum(entry.weight for entry in placed)
    totals.update(
        {
            "placed_units": sum(entry.quantity for entry in placed),
            "placed_packages": len(placed),
            "unplaced_units": layout.unplaced_quantity,
            "placed_weight_kg": round(placed_weight, 3),
            "weight_utilization_pct": weight_utilization_pct(
                placed_weight, layout.vehicle.max_weight
            ),
        }
    )
    return totals

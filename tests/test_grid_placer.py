import unittest

from services import grid_placer, layout_settings, packager, row_sorter
from services.models import GridPosition, Item, Package


def _assumptions(**overrides):
    assumptions = layout_settings.default_layout_assumptions()
    assumptions.update(overrides)
    return assumptions


def _place(items, section_max_length, **overrides):
    assumptions = _assumptions(**overrides)
    packages = packager.package_items(items, assumptions)
    return grid_placer.place(packages, section_max_length, assumptions)


def _package(length, large=False):
    item = Item(product_id=f"P{length}", name=f"Beam {length} m", quantity=1, length=length)
    return Package(item=item, units=1, length=length, uses_large_package=large)


class GridPlacerHelperTests(unittest.TestCase):
    def test_columns_follow_shortest_package(self):
        self.assertEqual(grid_placer.compute_columns([_package(2.0)], 7.0), 3)
        self.assertEqual(grid_placer.compute_columns([_package(1.0), _package(4.0)], 7.0), 7)
        self.assertEqual(grid_placer.compute_columns([], 7.0), 3)

    def test_display_columns_are_clamped(self):
        self.assertEqual(grid_placer.display_columns(1), 3)
        self.assertEqual(grid_placer.display_columns(12), 12)
        self.assertEqual(grid_placer.display_columns(45), 20)

    def test_attempt_order_prefers_medium_then_longest(self):
        packages = [_package(1.0), _package(4.0), _package(9.0, large=True), _package(6.0, large=True)]

        ordered = grid_placer.attempt_order(packages, 10.0)

        self.assertEqual([pkg.length for pkg in ordered], [6.0, 4.0, 1.0, 9.0])


class GridPlacementTests(unittest.TestCase):
    def assert_valid_stacking(self, result, section_max_length, threshold=5.80):
        cells = {}
        row_lengths = {}
        for entry in result.placed:
            pos = entry.grid_position
            key = (pos.floor, pos.row, pos.column)
            self.assertNotIn(key, cells, f"cell {key} holds two packages")
            cells[key] = entry
            row_key = (pos.floor, pos.row)
            row_lengths[row_key] = row_lengths.get(row_key, 0.0) + entry.item.length

        for row_key, used in row_lengths.items():
            self.assertLessEqual(used, section_max_length + 1e-9, f"row {row_key} overflows")

        for (floor, row, column), entry in cells.items():
            if floor == 1:
                continue
            lower = [key for key in cells if key[0] < floor and key[1] == row]
            self.assertTrue(lower, f"package at {(floor, row, column)} floats")
            direct = None
            for below in range(floor - 1, 0, -1):
                if (below, row, column) in cells:
                    direct = cells[(below, row, column)]
                    break
            if direct is not None and entry.item.length < threshold:
                self.assertLess(
                    direct.item.length,
                    threshold,
                    f"short package at {(floor, row, column)} rests on a long one",
                )

    def test_medium_beams_go_first_and_rows_sort_long_beams_to_front(self):
        items = [
            Item(product_id="1", name="Beam 6.00 m", quantity=10, length=6.0, weight=60.0, position=0),
            Item(product_id="2", name="Beam 3.00 m", quantity=40, length=3.0, weight=30.0, position=1),
        ]

        result = _place(items, 7.0)

        self.assertEqual(result.unplaced, [])
        positions = {
            (entry.item.product_id, entry.grid_position) for entry in result.placed
        }
        self.assertEqual(
            positions,
            {
                ("1", GridPosition(1, 3, 1)),
                ("2", GridPosition(1, 1, 1)),
                ("2", GridPosition(1, 2, 1)),
            },
        )

        sorted_rows = row_sorter.sort_rows(result.placed, _assumptions())
        by_product = {}
        for entry in sorted_rows:
            by_product.setdefault(entry.item.product_id, []).append(entry.grid_position.row)
        self.assertEqual(by_product["1"], [1])
        self.assertEqual(sorted(by_product["2"]), [2, 3])

    def test_zero_length_item_is_placed_on_ground_floor(self):
        result = _place([Item(product_id="B", name="Block", quantity=3)], 7.0)

        self.assertEqual(len(result.placed), 1)
        self.assertEqual(result.placed[0].grid_position, GridPosition(1, 1, 1))
        self.assertEqual(result.placed[0].quantity, 3)

    def test_overflow_reports_remaining_units(self):
        result = _place([Item(product_id="L", name="Beam", quantity=200, length=5.9)], 6.0)

        self.assertEqual(sum(entry.quantity for entry in result.placed), 120)
        self.assertEqual(len(result.placed), 12)
        self.assertEqual(len(result.unplaced), 1)
        self.assertEqual(result.unplaced[0].quantity, 80)
        self.assertIsNone(result.unplaced[0].grid_position)
        self.assertEqual(result.unplaceable[0].quantity, 80)
        self.assertEqual(result.unplaceable[0].reason, "No free position left in the cargo grid.")
        self.assertFalse(result.search_exhausted)
        self.assert_valid_stacking(result, 6.0)

    def test_package_longer_than_section_is_not_placed(self):
        result = _place([Item(product_id="XL", name="Beam", quantity=5, length=8.0)], 7.0)

        self.assertEqual(result.placed, [])
        self.assertEqual(result.unplaced[0].quantity, 5)
        self.assertIn("Longer than the available length", result.unplaceable[0].reason)

    def test_short_package_never_rests_on_long_one(self):
        items = [
            Item(product_id="L", name="Long", quantity=60, length=6.0, position=0),
            Item(product_id="S", name="Short", quantity=20, length=1.5, position=1),
        ]

        result = _place(items, 12.0)

        self.assertEqual({entry.item.product_id for entry in result.placed}, {"L"})
        self.assertEqual(sum(entry.quantity for entry in result.placed), 60)
        self.assertEqual(result.unplaced[0].item.product_id, "S")
        self.assertEqual(result.unplaced[0].quantity, 20)
        self.assert_valid_stacking(result, 12.0)

    def test_long_package_may_rest_on_short_one(self):
        items = [
            Item(product_id="S", name="Short", quantity=120, length=5.0, position=0),
            Item(product_id="L", name="Long", quantity=10, length=11.0, position=1),
        ]

        result = _place(items, 12.0)

        self.assertEqual(result.unplaced, [])
        long_entries = [entry for entry in result.placed if entry.item.product_id == "L"]
        self.assertEqual(len(long_entries), 1)
        self.assertEqual(long_entries[0].grid_position, GridPosition(2, 1, 1))
        self.assert_valid_stacking(result, 12.0)

    def test_search_limit_stops_search_and_reports_remaining(self):
        result = _place(
            [Item(product_id="S", name="Short", quantity=200, length=3.0)],
            7.0,
            max_placement_probes=20,
        )

        self.assertTrue(result.search_exhausted)
        self.assertEqual(sum(entry.quantity for entry in result.placed), 60)
        self.assertEqual(result.unplaced[0].quantity, 140)
        self.assertIn("search limit", result.unplaceable[0].reason)

    def test_search_limit_trips_once_rows_are_full_by_length(self):
        # 100 packages but only 24 slots; rejected row checks still spend the budget.
        result = _place(
            [Item(product_id="S", name="Short", quantity=2000, length=3.0)],
            7.0,
            max_placement_probes=300,
        )

        self.assertTrue(result.search_exhausted)
        placed_units = sum(entry.quantity for entry in result.placed)
        self.assertLessEqual(placed_units, 480)
        self.assertEqual(placed_units + result.unplaced[0].quantity, 2000)

    def test_packages_per_line_limit_follows_grid_capacity(self):
        items = [Item(product_id="S", name="Short", quantity=1, length=3.0)]
        tiny = [Item(product_id="T", name="Tiny", quantity=1, length=0.125)]

        self.assertEqual(grid_placer.packages_per_line_limit(items, 7.0), 4 * 3 * 50)
        self.assertEqual(grid_placer.packages_per_line_limit(tiny, 7.0), 4 * 3 * 56)

    def test_mixed_load_respects_stacking_rules_and_conserves_units(self):
        items = [
            Item(product_id="A", name="A", quantity=50, length=6.0, position=0),
            Item(product_id="B", name="B", quantity=100, length=3.0, position=1),
            Item(product_id="C", name="C", quantity=60, length=1.5, position=2),
            Item(product_id="D", name="D", quantity=20, length=11.0, position=3),
        ]

        result = _place(items, 12.0)

        self.assert_valid_stacking(result, 12.0)
        for item in items:
            total = sum(
                entry.quantity for entry in result.items if entry.item.product_id == item.product_id
            )
            self.assertEqual(total, item.quantity)

    def test_placement_is_deterministic(self):
        items = [
            Item(product_id="A", name="A", quantity=35, length=6.0, position=0),
            Item(product_id="B", name="B", quantity=70, length=2.5, position=1),
        ]

        first = _place(items, 12.0)
        second = _place(items, 12.0)

        self.assertEqual(first.placed, second.placed)
        self.assertEqual(first.unplaced, second.unplaced)


if __name__ == "__main__":
    unittest.main()

"""Tests for the warehouse segment rule engine."""

import itertools
import os
import sys
import unittest

import pandas as pd

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from backend.errors import UnsupportedReportType
from backend.processors import numeric_field, process, text_field, with_sheet
from backend.report_types import PURCHASE_COLUMNS, SALES_COLUMNS, ReportType


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

WAREHOUSES = ["CEVA QLD", "CEVA VIC", "CEVA OFFSITE", "CEVA AUC", "CEVA VIC ", "ceva vic", None]


def _mixed_rows():
    """Rows carrying every field any report type reads, in many combinations."""
    rows = []
    combos = itertools.product(["MG", "LDV", None], WAREHOUSES, ["Normal", "Damaged"], [0, 2, None])
    for i, (brand, warehouse, location, qty) in enumerate(combos):
        rows.append({
            "Brand Name": brand,
            "Processed Part #": f"P{i}",
            "Warehouse": warehouse,
            "To Warehouse": warehouse,
            "Stock Location": location,
            "SOH": qty,
            "Inbound QTY": qty,
            "Pending QTY": 1 if i % 5 == 0 else None,
            "BO QTY": qty,
        })
    return pd.DataFrame(rows)


def _parts(table):
    return list(table["Processed Part #"])


def _sheet_counts(result):
    return [(ws["name"], ws["rows"]) for ws in result.worksheets]


class TestFieldAccessors(unittest.TestCase):

    def test_numeric_field_defaults_to_zero(self):
        table = pd.DataFrame({"SOH": [5, None, "", "abc", "7", 0]})
        self.assertEqual(list(numeric_field(table, "SOH")), [5, 0, 0, 0, 7, 0])

    def test_numeric_field_absent_column(self):
        table = pd.DataFrame({"Other": ["x", "y"]})
        self.assertEqual(list(numeric_field(table, "SOH")), [0, 0])

    def test_text_field_absent_column(self):
        table = pd.DataFrame({"Other": ["x", "y"]})
        self.assertTrue(text_field(table, "Warehouse").isna().all())


class TestWithSheet(unittest.TestCase):

    def test_appends_new_sheet(self):
        a = pd.DataFrame({"x": [1]})
        b = pd.DataFrame({"y": [2]})
        table_set = with_sheet({"A": a}, "B", b)
        self.assertEqual(list(table_set), ["A", "B"])

    def test_replaces_and_moves_to_end(self):
        old = pd.DataFrame({"x": [1, 2]})
        new = pd.DataFrame({"z": [9]})
        original = {"QLD": old, "Other": pd.DataFrame()}
        table_set = with_sheet(original, "QLD", new)

        self.assertEqual(list(table_set), ["Other", "QLD"])
        self.assertIs(table_set["QLD"], new)
        self.assertEqual(list(table_set["QLD"].columns), ["z"])
        # input untouched
        self.assertEqual(list(original), ["QLD", "Other"])
        self.assertIs(original["QLD"], old)


class TestInventory(unittest.TestCase):

    def test_example_scenario(self):
        table = pd.DataFrame([
            {"Brand Name": "MG", "Warehouse": "CEVA QLD", "Stock Location": "Normal", "SOH": 5},
            {"Brand Name": "MG", "Warehouse": "CEVA VIC", "Stock Location": "Normal", "SOH": 0},
        ])
        result = process(ReportType.INVENTORY_AU, table)

        self.assertEqual(result.original_rows, 2)
        self.assertEqual(_sheet_counts(result), [("QLD", 1), ("VIC&OFF", 0), ("VIC", 0), ("OFF", 0)])
        self.assertEqual(list(result.table_set), ["QLD", "VIC&OFF", "VIC", "OFF"])
        self.assertEqual(result.table_set["QLD"].iloc[0].to_dict(), table.iloc[0].to_dict())

    def test_full_rows_kept(self):
        table = pd.DataFrame([
            {"Brand Name": "MG", "Warehouse": "CEVA AUC", "Stock Location": "Normal", "SOH": 1, "Bin": "A1"},
        ])
        result = process(ReportType.INVENTORY_NZ, table)
        self.assertEqual(list(result.table_set["NZ"].columns), list(table.columns))
        self.assertEqual(result.table_set["NZ"].loc[0, "Bin"], "A1")

    def test_missing_soh_excluded_everywhere(self):
        table = pd.DataFrame([
            {"Brand Name": "MG", "Warehouse": wh, "Stock Location": "Normal"}
            for wh in ("CEVA QLD", "CEVA VIC", "CEVA OFFSITE")
        ])
        self.assertNotIn("SOH", table.columns)
        result = process(ReportType.INVENTORY_AU, table)
        self.assertTrue(all(ws["rows"] == 0 for ws in result.worksheets))

        table["SOH"] = [None, float("nan"), ""]
        result = process(ReportType.INVENTORY_AU, table)
        self.assertTrue(all(ws["rows"] == 0 for ws in result.worksheets))

    def test_vic_and_off_is_union_of_vic_and_off(self):
        result = process(ReportType.INVENTORY_AU, _mixed_rows())
        vic = set(_parts(result.table_set["VIC"]))
        off = set(_parts(result.table_set["OFF"]))
        both = _parts(result.table_set["VIC&OFF"])

        self.assertTrue(vic and off)
        self.assertEqual(len(both), len(set(both)))
        self.assertEqual(set(both), vic | off)
        self.assertFalse(vic & off)

    def test_exact_string_matching(self):
        table = pd.DataFrame([
            {"Brand Name": "mg", "Warehouse": "CEVA QLD", "Stock Location": "Normal", "SOH": 1},
            {"Brand Name": "MG", "Warehouse": "CEVA QLD ", "Stock Location": "Normal", "SOH": 1},
            {"Brand Name": "MG", "Warehouse": "CEVA QLD", "Stock Location": "normal", "SOH": 1},
            {"Brand Name": "MG", "Warehouse": "CEVA QLD", "Stock Location": "Normal", "SOH": "3"},
        ])
        result = process(ReportType.INVENTORY_AU, table)
        self.assertEqual(result.worksheets[0], {"name": "QLD", "rows": 1})
        self.assertEqual(result.table_set["QLD"].loc[0, "SOH"], "3")


class TestPurchase(unittest.TestCase):

    def test_total_with_missing_pending(self):
        table = pd.DataFrame([{"Inbound QTY": 3, "To Warehouse": "CEVA QLD", "Brand Name": "MG"}])
        result = process(ReportType.PURCHASE_AU, table)

        qld = result.table_set["QLD"]
        self.assertEqual(len(qld), 1)
        self.assertEqual(qld.loc[0, "Total"], 3)
        self.assertEqual(list(qld.columns), PURCHASE_COLUMNS)
        self.assertTrue(pd.isna(qld.loc[0, "Pending QTY"]))
        self.assertTrue(pd.isna(qld.loc[0, "Order #"]))
        self.assertEqual(_sheet_counts(result), [("QLD", 1), ("VIC", 0)])

    def test_total_replaces_source_column_and_filters(self):
        table = pd.DataFrame([
            {"Brand Name": "MG", "To Warehouse": "CEVA AUC", "Inbound QTY": None, "Pending QTY": 2, "Total": 0},
            {"Brand Name": "MG", "To Warehouse": "CEVA AUC", "Inbound QTY": 0, "Pending QTY": 0, "Total": 50},
            {"Brand Name": "MG", "To Warehouse": "CEVA QLD", "Inbound QTY": 4, "Pending QTY": 1, "Total": 0},
        ])
        result = process(ReportType.PURCHASE_NZ, table)

        nz = result.table_set["NZ"]
        self.assertEqual(len(nz), 1)
        self.assertEqual(nz.loc[0, "Total"], 2)
        # the input table is not modified
        self.assertEqual(list(table["Total"]), [0, 50, 0])

    def test_vic_excludes_offsite(self):
        table = pd.DataFrame([
            {"Brand Name": "MG", "To Warehouse": "CEVA OFFSITE", "Inbound QTY": 1},
            {"Brand Name": "MG", "To Warehouse": "CEVA VIC", "Inbound QTY": 1},
        ])
        result = process(ReportType.PURCHASE_AU, table)
        self.assertEqual(list(result.table_set["VIC"]["To Warehouse"]), ["CEVA VIC"])


class TestSales(unittest.TestCase):

    def test_vic_includes_offsite(self):
        table = pd.DataFrame([
            {"Brand Name": "MG", "Warehouse": "CEVA OFFSITE", "BO QTY": 2, "Processed Part #": "A", "Extra": 1},
            {"Brand Name": "MG", "Warehouse": "CEVA VIC", "BO QTY": 1, "Processed Part #": "B", "Extra": 1},
            {"Brand Name": "MG", "Warehouse": "CEVA QLD", "BO QTY": 0, "Processed Part #": "C", "Extra": 1},
        ])
        result = process(ReportType.SALES_AU, table)

        self.assertEqual(_sheet_counts(result), [("QLD", 0), ("VIC", 2)])
        vic = result.table_set["VIC"]
        self.assertEqual(list(vic.columns), SALES_COLUMNS)
        self.assertEqual(_parts(vic), ["A", "B"])

    def test_nz(self):
        table = pd.DataFrame([
            {"Brand Name": "MG", "Warehouse": "CEVA AUC", "BO QTY": 4},
            {"Brand Name": "MG", "Warehouse": "CEVA AUC"},
        ])
        result = process(ReportType.SALES_NZ, table)
        self.assertEqual(_sheet_counts(result), [("NZ", 1)])


class TestEngineProperties(unittest.TestCase):

    def test_order_preserved_for_every_type(self):
        table = _mixed_rows()
        for report_type in ReportType:
            result = process(report_type, table)
            self.assertTrue(any(ws["rows"] for ws in result.worksheets), report_type)
            for name, sheet in result.table_set.items():
                with self.subTest(report_type=report_type, sheet=name):
                    positions = [int(part[1:]) for part in _parts(sheet)]
                    self.assertEqual(positions, sorted(positions))

    def test_idempotent(self):
        table = _mixed_rows()
        snapshot = table.copy()
        for report_type in ReportType:
            first = process(report_type, table)
            second = process(report_type, table)
            self.assertEqual(first.worksheets, second.worksheets)
            self.assertEqual(list(first.table_set), list(second.table_set))
            for name in first.table_set:
                pd.testing.assert_frame_equal(first.table_set[name], second.table_set[name])
        pd.testing.assert_frame_equal(table, snapshot)

    def test_empty_table(self):
        for report_type in ReportType:
            result = process(report_type, pd.DataFrame())
            self.assertEqual(result.original_rows, 0)
            self.assertTrue(all(ws["rows"] == 0 for ws in result.worksheets))

    def test_base_sheets_kept_and_replaced(self):
        table = pd.DataFrame([{"Brand Name": "MG", "Warehouse": "CEVA AUC", "Stock Location": "Normal", "SOH": 1}])
        stale = pd.DataFrame({"old": [1, 2, 3]})
        base = {"NZ": stale, "Source": table}

        result = process(ReportType.INVENTORY_NZ, table, base)

        self.assertEqual(list(result.table_set), ["Source", "NZ"])
        self.assertEqual(len(result.table_set["NZ"]), 1)
        self.assertIs(base["NZ"], stale)

    def test_unsupported_report_type(self):
        for value in ("Inventory Enquiry AU", None, "bogus"):
            with self.subTest(value=value):
                with self.assertRaises(UnsupportedReportType):
                    process(value, pd.DataFrame())


if __name__ == "__main__":
    unittest.main()

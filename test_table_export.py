# test_table_export.py
"""
Tests for CSV / XLSX export of the instrument view.
Run with: python -m pytest test_table_export.py -v
"""

import csv
import tempfile
import unittest
from pathlib import Path

from openpyxl import load_workbook

from table_export import export_rows_csv, export_rows_xlsx

HEADERS = ["Name", "Serial", "Days Left"]
ROWS = [["Centrifuge", "C-1", 4], ["Balance", "B-2", None]]


class TestTableExport(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.out = Path(self.tmpdir.name)

    def tearDown(self):
        self.tmpdir.cleanup()

    def test_csv(self):
        path = export_rows_csv(self.out / "view.csv", HEADERS, ROWS)
        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        self.assertEqual(rows, [HEADERS, ["Centrifuge", "C-1", "4"], ["Balance", "B-2", ""]])

    def test_xlsx_adds_suffix(self):
        path = export_rows_xlsx(self.out / "view", HEADERS, ROWS)
        self.assertEqual(path.suffix, ".xlsx")
        ws = load_workbook(path).active
        self.assertEqual(ws.title, "Instruments")
        self.assertEqual([c.value for c in ws[1]], HEADERS)
        self.assertTrue(ws["A1"].font.bold)
        self.assertEqual([c.value for c in ws[2]], ["Centrifuge", "C-1", "4"])
        self.assertEqual(ws.max_row, 3)


if __name__ == "__main__":
    unittest.main()


import json
import tempfile
import unittest
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock

from sysmlv2_explorer.element_cache import ElementCache
from sysmlv2_explorer.html_report import generate_html_report, write_html_report, write_json_dump


class TestHtmlReport(unittest.TestCase):

    def setUp(self):
        self.cache = ElementCache(MagicMock())
        self.cache.put("motor", {"@id": "motor", "@type": "PartDefinition", "name": "Motor"})
        self.cache.put("evil", {"@id": "evil", "@type": "PartUsage", "name": "<script>alert(1)</script>"})

    def test_report_contains_stats_and_navigation(self):
        html = generate_html_report(self.cache, "proj12345678", "commit12345678", export_date=date(2025, 1, 31))

        self.assertIn("Project: proj1234...", html)
        self.assertIn('<div class="stat-value">2</div>', html)
        self.assertIn("2025-01-31", html)
        self.assertIn('data-id="motor"', html)
        self.assertIn("PartDefinition", html)

    def test_names_are_escaped(self):
        html = generate_html_report(self.cache, "proj1", "commit1")

        self.assertIn("&lt;script&gt;alert(1)&lt;/script&gt;", html)
        self.assertNotIn("<script>alert(1)</script>", html)

    def test_embedded_json_is_complete(self):
        html = generate_html_report(self.cache, "proj1", "commit1")

        start = html.index("const elements = ") + len("const elements = ")
        end = html.index(";\n", start)
        embedded = json.loads(html[start:end].replace("<\\/", "</"))
        self.assertEqual(set(embedded), {"motor", "evil"})
        self.assertEqual(embedded["motor"]["name"], "Motor")

    def test_write_report(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = write_html_report(Path(tmp) / "out" / "report.html", self.cache, "proj1", "commit1")
            self.assertTrue(path.is_file())
            self.assertIn("<!DOCTYPE html>", path.read_text(encoding="utf-8"))

    def test_write_json_dump(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = write_json_dump(Path(tmp) / "elements.json", self.cache)
            dumped = json.loads(path.read_text(encoding="utf-8"))
            self.assertEqual(dumped["motor"]["name"], "Motor")

    def test_write_report_requires_elements(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ValueError):
                write_html_report(Path(tmp) / "report.html", ElementCache(MagicMock()), "proj1", "commit1")


if __name__ == '__main__':
    unittest.main()

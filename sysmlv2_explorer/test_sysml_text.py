
import tempfile
import unittest
from unittest.mock import patch

from sysmlv2_explorer.element_cache import ElementCache, ExplorerSession
from sysmlv2_explorer.sysml_text import cache_lookup, export_project_text, generate_sysml_text, save_export
from sysmlv2_explorer.sysml_types import element_label, element_name, escape_name, keyword_for
from sysmlv2_explorer.sysmlv2_api_helpers import RemoteError


class TestSysmlTypes(unittest.TestCase):

    def test_keywords(self):
        self.assertEqual(keyword_for("PartDefinition"), "part def")
        self.assertEqual(keyword_for("RequirementUsage"), "requirement")
        self.assertIsNone(keyword_for("LiteralInteger"))

    def test_element_name_fallbacks(self):
        self.assertEqual(element_name({"declaredName": "Motor"}), "Motor")
        self.assertEqual(element_name({"qualifiedName": "Vehicle::'Drive Unit'"}), "Drive Unit")
        self.assertIsNone(element_name({"@id": "x"}))

    def test_escape_name(self):
        self.assertEqual(escape_name("Motor"), "Motor")
        self.assertEqual(escape_name("Drive Unit"), "'Drive Unit'")
        self.assertEqual(escape_name("Bob's part"), "'Bob\\'s part'")

    def test_element_label_uses_id_prefix(self):
        self.assertEqual(element_label({"@id": "1234567890", "@type": "PartUsage"}), "12345678 [PartUsage]")


class TestSysmlText(unittest.TestCase):

    def setUp(self):
        self.elements = {
            "motor": {"@id": "motor", "@type": "PartDefinition", "name": "Motor",
                      "ownedMember": [{"@id": "shaft"}, {"@id": "lit"}]},
            "shaft": {"@id": "shaft", "@type": "PartUsage", "name": "shaft"},
            "lit": {"@id": "lit", "@type": "LiteralInteger"},
            "note": {"@id": "note", "@type": "Comment", "body": "Electric motor"},
        }

    def test_leaf_renders_with_semicolon(self):
        text = generate_sysml_text({"@id": "m", "@type": "PartDefinition", "name": "Motor"}, self.elements.get)
        self.assertEqual(text, "part def Motor;\n")

    def test_nested_children_are_indented(self):
        text = generate_sysml_text(self.elements["motor"], self.elements.get)
        self.assertEqual(text, "part def Motor {\n    part shaft;\n}\n")

    def test_only_non_displayable_children_renders_leaf(self):
        element = {"@id": "p", "@type": "Package", "name": "Lib", "ownedMember": [{"@id": "lit"}]}
        self.assertEqual(generate_sysml_text(element, self.elements.get), "package Lib;\n")

    def test_missing_child_is_skipped(self):
        element = {"@id": "p", "@type": "Package", "name": "Lib", "ownedMember": [{"@id": "ghost"}]}
        self.assertEqual(generate_sysml_text(element, self.elements.get), "package Lib;\n")

    def test_comment_and_unknown_types(self):
        self.assertEqual(generate_sysml_text(self.elements["note"], self.elements.get), "/* Electric motor */\n")
        self.assertEqual(generate_sysml_text(self.elements["lit"], self.elements.get, 1),
                         "    /* LiteralInteger */\n")

    def test_quoted_name(self):
        element = {"@id": "p", "@type": "PartUsage", "name": "front wheel"}
        self.assertEqual(generate_sysml_text(element, self.elements.get), "part 'front wheel';\n")

    def test_self_reference_does_not_recurse(self):
        element = {"@id": "loop", "@type": "Package", "name": "Loop", "ownedMember": [{"@id": "loop"}]}
        lookup = {"loop": element}.get
        self.assertEqual(generate_sysml_text(element, lookup), "package Loop;\n")

    def test_cache_lookup_fetches_missing(self):
        def fetch(element_id):
            if element_id == "shaft":
                return self.elements["shaft"]
            raise RemoteError("http://mock-server/x", 404, "not found")

        cache = ElementCache(fetch)
        cache.put("motor", self.elements["motor"])

        self.assertIsNone(cache_lookup(cache)("shaft"))
        lookup = cache_lookup(cache, fetch_missing=True)
        self.assertEqual(lookup("shaft")['name'], "shaft")
        self.assertIsNone(lookup("lit"))

    @patch('sysmlv2_explorer.element_cache.sysmlv2_api_helpers.get_roots')
    def test_export_project_text(self, mock_get_roots):
        mock_get_roots.return_value = [{"@id": "root", "ownedMember": [{"@id": "motor"}]}]
        session = ExplorerSession("http://mock-server", "proj1", "commit1", fetcher=self.elements.__getitem__)

        text = export_project_text(session, "Drone")

        self.assertTrue(text.startswith("// SysML v2 Export\n// Project: Drone\n"))
        self.assertIn("// Commit: commit1\n", text)
        self.assertIn("part def Motor {\n    part shaft;\n}\n", text)

    def test_export_single_element(self):
        session = ExplorerSession("http://mock-server", "proj1", "commit1", fetcher=self.elements.__getitem__)

        text = export_project_text(session, "Drone", element_id="shaft")

        self.assertTrue(text.endswith("part shaft;\n"))

    def test_save_export(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = save_export("package Lib;\n", "My Project", tmp)
            self.assertTrue(path.name.startswith("sysml_export_My_Project_"))
            self.assertEqual(path.suffix, ".sysml")
            self.assertEqual(path.read_text(encoding="utf-8"), "package Lib;\n")


if __name__ == '__main__':
    unittest.main()


import os
import tempfile
import unittest
from unittest.mock import patch

from sysmlv2_explorer import export_sysml_text, project_requirements
from sysmlv2_explorer.sysmlv2_api_helpers import RemoteError


class ScriptTestCase(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.cwd = os.getcwd()
        os.chdir(self.tmp.name)
        self.addCleanup(self.tmp.cleanup)
        self.addCleanup(os.chdir, self.cwd)
        patcher = patch.dict(os.environ, {"SYSMLV2_BASE_URL": "http://mock-server"}, clear=True)
        patcher.start()
        self.addCleanup(patcher.stop)
        # Keep the root logger untouched
        for module in (export_sysml_text, project_requirements):
            diagnostics = patch.object(module, 'setup_diagnostics')
            diagnostics.start()
            self.addCleanup(diagnostics.stop)


class TestExportSysmlText(ScriptTestCase):

    @patch('sysmlv2_explorer.export_sysml_text.sysmlv2_api_helpers')
    def test_lists_projects_without_project_id(self, mock_helpers):
        mock_helpers.get_projects.return_value = [{"@id": "proj1", "name": "Drone"}]

        with patch('builtins.print') as mock_print:
            result = export_sysml_text.main(["alice", "secret"])

        self.assertEqual(result, 0)
        mock_helpers.configure_session.assert_called_once_with("alice", "secret", True)
        printed = " ".join(str(call.args[0]) for call in mock_print.call_args_list if call.args)
        self.assertIn("Drone", printed)

    @patch('sysmlv2_explorer.export_sysml_text.save_export')
    @patch('sysmlv2_explorer.export_sysml_text.export_project_text')
    @patch('sysmlv2_explorer.export_sysml_text.sysmlv2_api_helpers')
    def test_exports_latest_commit(self, mock_helpers, mock_export, mock_save):
        mock_helpers.get_project.return_value = {"@id": "proj1", "name": "Drone"}
        mock_helpers.get_commits.return_value = [{"@id": "c1"}, {"@id": "c2"}]
        mock_export.return_value = "package Drone;\n"
        mock_save.return_value = "output/sysml_export_Drone.sysml"

        with patch('builtins.print'):
            result = export_sysml_text.main(["alice", "secret", "proj1", "el1"])

        self.assertEqual(result, 0)
        session, project_name, element_id = mock_export.call_args[0]
        self.assertEqual(session.commit_id, "c2")
        self.assertEqual((project_name, element_id), ("Drone", "el1"))
        mock_save.assert_called_once_with("package Drone;\n", "Drone", "output")

    @patch('sysmlv2_explorer.export_sysml_text.sysmlv2_api_helpers')
    def test_failure_exits_with_error_report(self, mock_helpers):
        mock_helpers.get_project.side_effect = RemoteError("http://mock-server/projects/x", 404, "missing")

        with patch('builtins.print'):
            result = export_sysml_text.main(["alice", "secret", "x"])

        self.assertEqual(result, 1)
        reports = os.listdir(os.path.join(self.tmp.name, "diagnostics"))
        self.assertTrue(any(name.startswith("export_error_") for name in reports))

    def test_missing_credentials(self):
        with patch('builtins.input', return_value=""), patch('getpass.getpass', return_value=""), \
                patch('builtins.print'):
            self.assertEqual(export_sysml_text.main([]), 1)


class TestProjectRequirements(ScriptTestCase):

    @patch('sysmlv2_explorer.project_requirements.sysmlv2_api_helpers')
    def test_lists_requirements(self, mock_helpers):
        mock_helpers.get_commits.return_value = [{"@id": "c1"}]
        mock_helpers.get_all_elements.return_value = [
            {"@id": "r1", "@type": "RequirementUsage", "name": "MaxSpeed", "documentation": "Fast"},
            {"@id": "p1", "@type": "PartUsage", "name": "motor"},
        ]

        with patch('builtins.print') as mock_print:
            result = project_requirements.main(["alice", "secret", "proj1"])

        self.assertEqual(result, 0)
        mock_helpers.get_all_elements.assert_called_once_with("http://mock-server", "proj1", "c1")
        printed = "\n".join(str(call.args[0]) for call in mock_print.call_args_list if call.args)
        self.assertIn("Name: MaxSpeed", printed)
        self.assertNotIn("Name: motor", printed)

    @patch('sysmlv2_explorer.project_requirements.sysmlv2_api_helpers')
    def test_interactive_selection_quit(self, mock_helpers):
        mock_helpers.get_projects.return_value = [{"@id": "proj1", "name": "Drone"}]

        with patch('builtins.input', return_value="q"), patch('builtins.print'):
            result = project_requirements.main(["alice", "secret"])

        self.assertEqual(result, 0)
        mock_helpers.get_commits.assert_not_called()

    def test_format_requirements_empty(self):
        self.assertEqual(project_requirements.format_requirements([]), "No requirements found in this project.")


if __name__ == '__main__':
    unittest.main()

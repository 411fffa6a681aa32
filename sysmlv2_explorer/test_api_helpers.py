
import unittest
from unittest.mock import MagicMock, patch

import requests

from sysmlv2_explorer import sysmlv2_api_helpers
from sysmlv2_explorer.sysmlv2_api_helpers import RemoteError, TransportError


def json_response(payload, status_code=200, text="[]"):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.json.return_value = payload
    return response


class TestApiHelpers(unittest.TestCase):

    def setUp(self):
        self.server_url = "http://mock-server"
        self.project_id = "proj1"
        self.commit_id = "commit1"

    @patch('sysmlv2_explorer.sysmlv2_api_helpers.session')
    def test_get_projects(self, mock_session):
        mock_session.get.return_value = json_response([{"@id": "p1", "name": "Drone"}])

        projects = sysmlv2_api_helpers.get_projects(self.server_url)

        self.assertEqual(projects[0]['name'], "Drone")
        args, kwargs = mock_session.get.call_args
        self.assertEqual(args[0], f"{self.server_url}/projects")
        self.assertEqual(kwargs['timeout'], (30, 180))

    @patch('sysmlv2_explorer.sysmlv2_api_helpers.session')
    def test_remote_error_carries_status_and_truncated_body(self, mock_session):
        mock_session.get.return_value = json_response(None, status_code=403, text="x" * 2000)

        with self.assertRaises(RemoteError) as ctx:
            sysmlv2_api_helpers.get_projects(self.server_url)

        self.assertEqual(ctx.exception.status, 403)
        self.assertEqual(len(ctx.exception.body), 500)

    @patch('sysmlv2_explorer.sysmlv2_api_helpers.session')
    def test_transport_error_on_timeout(self, mock_session):
        mock_session.get.side_effect = requests.exceptions.Timeout("read timed out")

        with self.assertRaises(TransportError):
            sysmlv2_api_helpers.get_roots(self.server_url, self.project_id, self.commit_id)

    @patch('sysmlv2_explorer.sysmlv2_api_helpers.session')
    def test_broken_transfer_is_transport_error(self, mock_session):
        for error in (requests.exceptions.ChunkedEncodingError("Connection broken: IncompleteRead"),
                      requests.exceptions.ContentDecodingError("bad gzip"),
                      requests.exceptions.TooManyRedirects("redirect loop")):
            mock_session.get.side_effect = error

            with self.assertRaises(TransportError) as ctx:
                sysmlv2_api_helpers.fetch_element(self.server_url, self.project_id, self.commit_id, "el1")
            self.assertIs(ctx.exception.cause, error)

    @patch('sysmlv2_explorer.sysmlv2_api_helpers.session')
    def test_invalid_json_is_remote_error(self, mock_session):
        response = json_response(None, text="<html>")
        response.json.side_effect = ValueError("no json")
        mock_session.get.return_value = response

        with self.assertRaises(RemoteError):
            sysmlv2_api_helpers.get_project(self.server_url, self.project_id)

    @patch('sysmlv2_explorer.sysmlv2_api_helpers.session')
    def test_list_endpoint_rejects_object(self, mock_session):
        mock_session.get.return_value = json_response({"@id": "not-a-list"})

        with self.assertRaises(RemoteError):
            sysmlv2_api_helpers.get_commits(self.server_url, self.project_id)

    def test_get_commits_requires_arguments(self):
        with self.assertRaises(ValueError):
            sysmlv2_api_helpers.get_commits(self.server_url, None)

    @patch('sysmlv2_explorer.sysmlv2_api_helpers.session')
    def test_fetch_element_unwraps_list(self, mock_session):
        mock_session.get.return_value = json_response([{"@id": "el1", "name": "Motor"}])

        element = sysmlv2_api_helpers.fetch_element(self.server_url, self.project_id, self.commit_id, "el1")

        self.assertEqual(element['name'], "Motor")
        mock_session.get.assert_called_once()
        self.assertEqual(mock_session.get.call_args[0][0],
                         f"{self.server_url}/projects/proj1/commits/commit1/elements/el1")

    @patch('sysmlv2_explorer.sysmlv2_api_helpers.session')
    def test_get_all_elements_follows_pages(self, mock_session):
        mock_session.get.side_effect = [
            json_response([{"@id": "el1"}, {"@id": "el2"}]),
            json_response([{"@id": "el3"}]),
        ]

        elements = sysmlv2_api_helpers.get_all_elements(self.server_url, self.project_id, self.commit_id,
                                                        page_size=2)

        self.assertEqual([el['@id'] for el in elements], ["el1", "el2", "el3"])
        self.assertEqual(mock_session.get.call_count, 2)
        second_params = mock_session.get.call_args_list[1][1]['params']
        self.assertEqual(second_params, {"page[size]": 2, "page[after]": 2})

    @patch('sysmlv2_explorer.sysmlv2_api_helpers.session')
    def test_get_all_elements_stops_on_empty_page(self, mock_session):
        mock_session.get.side_effect = [
            json_response([{"@id": "el1"}, {"@id": "el2"}]),
            json_response([]),
        ]

        elements = sysmlv2_api_helpers.get_all_elements(self.server_url, self.project_id, self.commit_id,
                                                        page_size=2)

        self.assertEqual(len(elements), 2)

    @patch('sysmlv2_explorer.sysmlv2_api_helpers.session')
    def test_check_project_accessibility(self, mock_session):
        mock_session.get.return_value = json_response([], status_code=200)
        self.assertTrue(sysmlv2_api_helpers.check_project_accessibility(self.server_url, "p1"))

        mock_session.get.return_value = json_response(None, status_code=401)
        self.assertFalse(sysmlv2_api_helpers.check_project_accessibility(self.server_url, "p1"))

        mock_session.get.side_effect = requests.exceptions.ConnectionError("refused")
        self.assertFalse(sysmlv2_api_helpers.check_project_accessibility(self.server_url, "p1"))

    @patch('sysmlv2_explorer.sysmlv2_api_helpers.session')
    def test_check_project_accessibility_is_logged(self, mock_session):
        mock_session.get.return_value = json_response(None, status_code=403, text="denied")

        with self.assertLogs('sysmlv2_explorer.sysmlv2_api_helpers', level='INFO') as logs:
            sysmlv2_api_helpers.check_project_accessibility(self.server_url, "p1")

        output = "\n".join(logs.output)
        self.assertIn("API GET: http://mock-server/projects/p1/commits", output)
        self.assertIn("status=403, length=6", output)

    def test_filter_by_type(self):
        elements = [
            {"@id": "r1", "@type": "RequirementUsage"},
            {"@id": "p1", "@type": "PartUsage"},
            {"@id": "r2", "@type": "RequirementDefinition"},
        ]
        result = sysmlv2_api_helpers.filter_by_type(elements, *sysmlv2_api_helpers.REQUIREMENT_TYPES)
        self.assertEqual([el['@id'] for el in result], ["r1", "r2"])

    @patch('sysmlv2_explorer.sysmlv2_api_helpers.session')
    def test_configure_session(self, mock_session):
        sysmlv2_api_helpers.configure_session("alice", "secret")
        self.assertEqual(mock_session.auth, ("alice", "secret"))
        self.assertTrue(mock_session.verify)


if __name__ == '__main__':
    unittest.main()

#    This module provides the HTTP/JSON client for a SysMLv2-compatible REST API.
#    It includes helpers for querying projects, commits, roots and elements
#    using a persistent requests.Session with Basic Authentication.
#
#    All functions use the global `session` object for HTTP requests.
#
#    Copyright 2025 Tim Weilkiens
#
#    Licensed under the Apache License, Version 2.0 (the "License");
#    you may not use this file except in compliance with the License.
#    You may obtain a copy of the License at
#
#        http://www.apache.org/licenses/LICENSE-2.0
#
#    Unless required by applicable law or agreed to in writing, software
#    distributed under the License is distributed on an "AS IS" BASIS,
#    WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#    See the License for the specific language governing permissions and
#    limitations under the License.

import logging
from typing import List, Dict, Optional, Any

import requests
from requests.exceptions import ConnectionError, Timeout

logger = logging.getLogger(__name__)

# Global session object
session = requests.Session()
session.headers.update({"Accept": "application/json"})

# Fixed (connect, read) timeouts in seconds, not tunable per call
CONNECT_TIMEOUT = 30
READ_TIMEOUT = 180

ERROR_BODY_LIMIT = 500

REQUIREMENT_TYPES = [
    'RequirementUsage',
    'RequirementDefinition',
    'ConcernUsage',
    'ConcernDefinition',
    'StakeholderMembership',
    'SatisfyRequirementUsage',
    'AssertConstraintUsage',
]


class ApiError(Exception):
    """Base class for failures talking to the model server."""


class TransportError(ApiError):
    """DNS, connection or timeout failure. No HTTP status is available."""

    def __init__(self, url: str, cause: Exception):
        super().__init__(f"Transport error for {url}: {cause}")
        self.url = url
        self.cause = cause


class RemoteError(ApiError):
    """The server answered with a status >= 400 (or an unusable body)."""

    def __init__(self, url: str, status: int, body: str):
        self.url = url
        self.status = status
        self.body = (body or "")[:ERROR_BODY_LIMIT]
        super().__init__(f"API returned status {status} for {url}: {self.body[:200]}")


def configure_session(username: str, password: str, verify: bool = True) -> None:
    """
    Sets Basic Authentication and certificate verification on the shared session.

    Args:
        username (str): API user name.
        password (str): API password.
        verify (bool, optional): Verify TLS certificates. Servers with self-signed
            certificates need ``False``. Defaults to True.
    """
    session.auth = (username, password)
    session.verify = verify
    if not verify:
        requests.packages.urllib3.disable_warnings()
    logger.info("HTTP session configured for user %s (verify=%s)", username, verify)


def api_get(server_url: str, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
    """
    Performs one authenticated GET and deserializes the JSON body.

    Args:
        server_url (str): The base URL of the SysML v2 API server.
        path (str): Endpoint path starting with ``/``.
        params (Dict[str, Any], optional): Query parameters.

    Returns:
        Any: The decoded JSON document.

    Raises:
        TransportError: On connection problems, timeouts or any other failure
            of the HTTP exchange itself.
        RemoteError: If the server returns a status >= 400 or invalid JSON.
    """
    url = f"{server_url}{path}"
    logger.info("API GET: %s %s", url, params or "")
    try:
        response = session.get(url, params=params, timeout=(CONNECT_TIMEOUT, READ_TIMEOUT))
    except (ConnectionError, Timeout) as e:
        logger.warning("API transport error: %s: %s", url, e)
        raise TransportError(url, e) from e
    except requests.RequestException as e:
        # Broken or undecodable bodies, redirect loops
        logger.warning("API transport error: %s: %s", url, e)
        raise TransportError(url, e) from e

    body = response.text
    logger.info("API Response: status=%s, length=%d", response.status_code, len(body or ""))
    if response.status_code >= 400:
        logger.error("API Error Response: %s", (body or "")[:ERROR_BODY_LIMIT])
        raise RemoteError(url, response.status_code, body)

    try:
        return response.json()
    except ValueError as e:
        raise RemoteError(url, response.status_code, body) from e


def fetch_list(server_url: str, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """Like `api_get`, but the endpoint must answer with a JSON list."""
    result = api_get(server_url, path, params)
    if not isinstance(result, list):
        raise RemoteError(f"{server_url}{path}", 200, f"Expected a list, got {type(result).__name__}")
    return result


def get_commit_url(server_url: str, project_id: str, commit_id: str) -> str:
    """Helper to construct the commit URL."""
    return f"{server_url}/projects/{project_id}/commits/{commit_id}"


def fetch_element(server_url: str, project_id: str, commit_id: str, element_id: str) -> Dict[str, Any]:
    """
    Fetches a single element by ID. No caching happens here; see `element_cache`.

    Args:
        server_url (str): The base URL of the SysML v2 API server.
        project_id (str): The UUID of the project.
        commit_id (str): The UUID of the commit.
        element_id (str): The ID of the element.

    Returns:
        Dict[str, Any]: The element dictionary.
    """
    element = api_get(server_url, f"/projects/{project_id}/commits/{commit_id}/elements/{element_id}")
    if isinstance(element, list):
        # Some servers wrap single elements in a list
        element = element[0] if element else None
    if not isinstance(element, dict):
        raise RemoteError(f"{server_url}/.../elements/{element_id}", 200, "Element body is not an object")
    return element


def get_projects(server_url: str) -> List[Dict[str, Any]]:
    """
    Fetches the list of projects from the server, in server order.
    """
    projects = fetch_list(server_url, "/projects")
    logger.info("Found %d projects", len(projects))
    return projects


def get_project(server_url: str, project_id: str) -> Dict[str, Any]:
    """Fetches the project record, including its `projectUsages`."""
    return api_get(server_url, f"/projects/{project_id}")


def get_commits(server_url: str, project_id: str) -> List[Dict[str, Any]]:
    """
    Fetches the list of commits for a given project. The latest commit is last.

    Raises:
        ValueError: If arguments are missing.
    """
    if not server_url or not project_id:
        raise ValueError("Both server_url and project_id are required.")
    commits = fetch_list(server_url, f"/projects/{project_id}/commits")
    logger.info("Found %d commits for project %s", len(commits), project_id)
    return commits


def get_branches(server_url: str, project_id: str) -> List[Dict[str, Any]]:
    return fetch_list(server_url, f"/projects/{project_id}/branches")


def get_roots(server_url: str, project_id: str, commit_id: str) -> List[Dict[str, Any]]:
    """Fetches the root elements (elements without owner) of a commit."""
    roots = fetch_list(server_url, f"/projects/{project_id}/commits/{commit_id}/roots")
    logger.info("Found %d root elements in commit %s", len(roots), commit_id)
    return roots


def get_elements(server_url: str, project_id: str, commit_id: str, page_size: int = 500) -> List[Dict[str, Any]]:
    """Fetches a single page of elements of a commit."""
    return fetch_list(server_url, f"/projects/{project_id}/commits/{commit_id}/elements",
                      {"page[size]": page_size})


def get_all_elements(server_url: str, project_id: str, commit_id: str, page_size: int = 500) -> List[Dict[str, Any]]:
    """
    Fetches all elements of a commit, following `page[size]` / `page[after]`
    until the server returns a short page.

    Args:
        server_url (str): The base URL of the SysML v2 API server.
        project_id (str): The UUID of the project.
        commit_id (str): The UUID of the commit.
        page_size (int, optional): Number of elements per page. Defaults to 500.

    Returns:
        List[Dict[str, Any]]: All elements of the commit.
    """
    all_elements = []
    offset = 0
    while True:
        page = fetch_list(server_url, f"/projects/{project_id}/commits/{commit_id}/elements",
                          {"page[size]": page_size, "page[after]": offset})
        if not page:
            break
        all_elements.extend(page)
        offset += len(page)
        logger.info("Fetched %d elements so far...", len(all_elements))
        if len(page) < page_size:
            break
    logger.info("Total elements fetched: %d", len(all_elements))
    return all_elements


def check_project_accessibility(server_url: str, project_id: str) -> bool:
    """
    Probes a project by requesting its commits. Never raises.

    Returns:
        bool: True if the commits endpoint answers with 200.
    """
    url = f"{server_url}/projects/{project_id}/commits"
    logger.info("API GET: %s", url)
    try:
        response = session.get(url, timeout=(CONNECT_TIMEOUT, READ_TIMEOUT))
        logger.info("API Response: status=%s, length=%d", response.status_code, len(response.text or ""))
        return response.status_code == 200
    except requests.RequestException as e:
        logger.info("Project %s not accessible: %s", project_id, e)
        return False


def filter_by_type(elements: List[Dict[str, Any]], *types: str) -> List[Dict[str, Any]]:
    """Keeps the elements whose `@type` is one of `types`."""
    type_set = set(types)
    return [el for el in elements if el.get('@type') in type_set]

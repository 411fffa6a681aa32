#    Element cache and explorer session for the SysML v2 explorer.
#
#    An ExplorerSession bundles the server, the selected project and commit,
#    and the element cache for exactly that commit. Switching project or
#    commit means creating a new session.
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
import threading
from concurrent.futures import Future
from functools import partial
from typing import Callable, Dict, List, Optional, Any

from . import sysmlv2_api_helpers
from .sysmlv2_api_helpers import ApiError

logger = logging.getLogger(__name__)


class NotFoundInCache(Exception):
    """Navigation to an element that is not cached and could not be fetched."""

    def __init__(self, element_id: str, reason: str = ""):
        super().__init__(f"Element {element_id} not found: {reason}" if reason else f"Element {element_id} not found")
        self.element_id = element_id
        self.reason = reason


class ElementCache:
    """
    Maps element id to the last fetched element JSON.

    Entries are created on the first successful fetch and only removed by
    `clear()`. Writes are overwrite-idempotent: within one commit an id always
    yields the same payload. Concurrent `get_or_fetch` calls for the same
    uncached id share one in-flight fetch.
    """

    def __init__(self, fetcher: Callable[[str], Dict[str, Any]]):
        self._fetcher = fetcher
        self._entries: Dict[str, Dict[str, Any]] = {}
        self._in_flight: Dict[str, Future] = {}
        self._lock = threading.Lock()

    @property
    def fetcher(self) -> Callable[[str], Dict[str, Any]]:
        return self._fetcher

    def get(self, element_id: str) -> Optional[Dict[str, Any]]:
        return self._entries.get(element_id)

    def get_or_fetch(self, element_id: str) -> Dict[str, Any]:
        """
        Returns the cached element, fetching and storing it first on a miss.

        Raises:
            ApiError: If the fetch fails. Nothing is cached in that case.
        """
        element = self._entries.get(element_id)
        if element is not None:
            return element

        with self._lock:
            element = self._entries.get(element_id)
            if element is not None:
                return element
            future = self._in_flight.get(element_id)
            is_owner = future is None
            if is_owner:
                future = Future()
                self._in_flight[element_id] = future

        if not is_owner:
            return future.result()

        try:
            element = self._fetcher(element_id)
        except Exception as e:
            with self._lock:
                del self._in_flight[element_id]
            future.set_exception(e)
            raise

        self._entries[element_id] = element
        with self._lock:
            del self._in_flight[element_id]
        future.set_result(element)
        return element

    def put(self, element_id: str, element: Dict[str, Any]) -> None:
        self._entries[element_id] = element

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Element cache cleared")

    def items(self) -> List[tuple]:
        # Copy so callers can iterate while workers keep writing
        return list(self._entries.items())

    def ids(self) -> List[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, element_id: str) -> bool:
        return element_id in self._entries


class ExplorerSession:
    """
    The current selection: server, project, commit and the cache for that commit.

    Args:
        server_url (str): The base URL of the SysML v2 API server.
        project_id (str): The UUID of the project.
        commit_id (str): The UUID of the commit.
        fetcher (Callable, optional): Replaces the HTTP fetch, used by tests.
    """

    def __init__(self, server_url: str, project_id: str, commit_id: str,
                 fetcher: Optional[Callable[[str], Dict[str, Any]]] = None):
        self.server_url = server_url
        self.project_id = project_id
        self.commit_id = commit_id
        if fetcher is None:
            fetcher = partial(sysmlv2_api_helpers.fetch_element, server_url, project_id, commit_id)
        self.cache = ElementCache(fetcher)

    def __repr__(self):
        return f"ExplorerSession(project={self.project_id}, commit={self.commit_id}, cached={len(self.cache)})"

    @property
    def commit_url(self) -> str:
        return sysmlv2_api_helpers.get_commit_url(self.server_url, self.project_id, self.commit_id)

    def with_commit(self, commit_id: str) -> "ExplorerSession":
        """Returns a new session with an empty cache for another commit of the same project."""
        return ExplorerSession(self.server_url, self.project_id, commit_id)

    def navigate(self, element_id: str) -> Dict[str, Any]:
        """
        Resolves an element for navigation (links, jump-to-element).

        Raises:
            NotFoundInCache: If the element is not cached and the fetch fails.
        """
        try:
            return self.cache.get_or_fetch(element_id)
        except ApiError as e:
            logger.warning("Navigation to %s failed: %s", element_id, e)
            raise NotFoundInCache(element_id, str(e)) from e


def load_roots(session: ExplorerSession) -> List[Dict[str, Any]]:
    """Fetches the root elements of the session's commit and caches them."""
    roots = sysmlv2_api_helpers.get_roots(session.server_url, session.project_id, session.commit_id)
    for root in roots:
        if root.get('@id'):
            session.cache.put(root['@id'], root)
    return roots


def load_project_dependencies(session: ExplorerSession, cancel_event: Optional[threading.Event] = None) -> int:
    """
    Caches the root elements of every project used by the session's project.

    A dependency that fails to load is logged and skipped. Entries already in
    the cache are kept.

    Returns:
        int: Number of dependency root elements added to the cache.
    """
    try:
        project = sysmlv2_api_helpers.get_project(session.server_url, session.project_id)
    except ApiError as e:
        logger.error("Could not fetch project details for dependencies: %s", e)
        return 0

    usages = (project or {}).get('projectUsages')
    if not usages:
        logger.info("No dependencies found for project %s", session.project_id)
        return 0
    if isinstance(usages, dict):
        usages = [usages]

    logger.info("Found %d dependencies to load", len(usages))
    added = 0
    for index, usage in enumerate(usages):
        if cancel_event is not None and cancel_event.is_set():
            break
        used_project = usage.get('usedProject') or {}
        used_commit = usage.get('usedCommit') or {}
        dep_project_id = used_project.get('@id')
        dep_commit_id = used_commit.get('@id')
        dep_name = used_project.get('name') or (dep_project_id or 'Unknown')[:12]

        if not dep_project_id or not dep_commit_id:
            logger.info("  Skipping dependency with missing project or commit ID")
            continue

        logger.info("Loading dependency %d/%d: %s", index + 1, len(usages), dep_name)
        try:
            dep_roots = sysmlv2_api_helpers.get_roots(session.server_url, dep_project_id, dep_commit_id)
        except ApiError as e:
            logger.error("Failed to load dependency %s: %s", dep_name, e)
            continue
        for root in dep_roots:
            root_id = root.get('@id')
            if root_id and root_id not in session.cache:
                session.cache.put(root_id, root)
                added += 1

    logger.info("Dependency loading complete. Cache now contains %d elements", len(session.cache))
    return added

#    Project and commit selection helpers for the SysML v2 explorer.
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
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Any

from . import sysmlv2_api_helpers

logger = logging.getLogger(__name__)

PROBE_WORKERS = 10


class ProjectItem:

    def __init__(self, project_id: str, name: Optional[str], accessible: bool = True):
        self.id = project_id
        self.name = name or 'Unnamed'
        self.accessible = accessible

    def __str__(self):
        return f"{self.name} ({self.id[:8]}...)"

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name, 'accessible': self.accessible}


class CommitItem:

    def __init__(self, commit_id: str, timestamp: str, is_latest: bool = False):
        self.id = commit_id
        self.timestamp = timestamp
        self.is_latest = is_latest

    def __str__(self):
        label = f"{self.timestamp} ({self.id[:8]}...)"
        return f"{label} [LATEST]" if self.is_latest else label

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'timestamp': self.timestamp, 'is_latest': self.is_latest}


def commit_items(commits: List[Dict[str, Any]]) -> List[CommitItem]:
    """Wraps the server's commit list. The server lists the latest commit last."""
    items = []
    for index, commit in enumerate(commits):
        timestamp = commit.get('timestamp') or commit.get('created') or 'Unknown date'
        items.append(CommitItem(commit['@id'], timestamp, is_latest=(index == len(commits) - 1)))
    return items


def probe_projects(server_url: str, projects: List[Dict[str, Any]], max_workers: int = PROBE_WORKERS,
                   cancel_event: Optional[threading.Event] = None,
                   progress: Optional[Callable[[int, int], None]] = None) -> List[ProjectItem]:
    """
    Checks in parallel which projects the current user may read.

    Projects that were not probed because of cancellation are left out. The
    result keeps the server's project order.

    Args:
        server_url (str): The base URL of the SysML v2 API server.
        projects (List[Dict]): Projects as returned by `get_projects`.
        max_workers (int, optional): Size of the probe pool. Defaults to 10.
        cancel_event (threading.Event, optional): Cooperative cancellation flag.
        progress (Callable, optional): Called with (done, total) after each probe.

    Returns:
        List[ProjectItem]: The probed projects.
    """
    if not projects:
        return []
    total = len(projects)
    done = [0]
    done_lock = threading.Lock()

    def probe(project):
        if cancel_event is not None and cancel_event.is_set():
            return None
        project_id = project['@id']
        accessible = sysmlv2_api_helpers.check_project_accessibility(server_url, project_id)
        if progress is not None:
            with done_lock:
                done[0] += 1
                count = done[0]
            progress(count, total)
        return ProjectItem(project_id, project.get('name'), accessible)

    logger.info("Starting parallel accessibility checks for %d projects...", total)
    start = time.monotonic()
    with ThreadPoolExecutor(max_workers=min(max_workers, total)) as executor:
        items = [item for item in executor.map(probe, projects) if item is not None]
    logger.info("Parallel accessibility checks completed in %.0fms (%d projects)",
                (time.monotonic() - start) * 1000, len(items))
    return items

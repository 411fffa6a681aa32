#    Commit comparison for the SysML v2 explorer.
#
#    Classifies the root elements of two commits as added, removed, modified
#    or unchanged. "Modified" is decided by a ModificationPolicy: the two
#    payloads are serialized as canonical JSON (sorted keys) after dropping
#    the policy's ignored fields, and compared as text.
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

import json
import logging
from typing import Dict, Iterable, List, Mapping, Any

from . import sysmlv2_api_helpers
from .sysml_types import element_name, short_type

logger = logging.getLogger(__name__)

MODIFIED_DISPLAY_LIMIT = 50


class ModificationPolicy:
    """
    Decides whether two payloads of the same element differ.

    Args:
        ignored_fields (Iterable[str], optional): Top-level keys left out of the
            comparison, e.g. server bookkeeping that changes on every commit.
    """

    def __init__(self, ignored_fields: Iterable[str] = ()):
        self.ignored_fields = frozenset(ignored_fields)

    def canonical(self, element: Mapping[str, Any]) -> str:
        relevant = {k: v for k, v in element.items() if k not in self.ignored_fields}
        return json.dumps(relevant, sort_keys=True, separators=(',', ':'), default=str)

    def is_modified(self, base: Mapping[str, Any], other: Mapping[str, Any]) -> bool:
        return self.canonical(base) != self.canonical(other)


DEFAULT_POLICY = ModificationPolicy()


class CommitDiff:

    def __init__(self, added, removed, modified, unchanged, base, other):
        self.added = added
        self.removed = removed
        self.modified = modified
        self.unchanged = unchanged
        self._base = base
        self._other = other

    @property
    def total(self) -> int:
        return len(self.added) + len(self.removed) + len(self.modified) + len(self.unchanged)

    def element(self, element_id: str) -> Mapping[str, Any]:
        """The newest known payload of an element in the comparison."""
        return self._other.get(element_id) or self._base.get(element_id)

    def labels(self, ids: Iterable[str]) -> List[str]:
        result = []
        for element_id in ids:
            element = self.element(element_id)
            name = element_name(element) or element_id[:8]
            result.append(f"{name} ({short_type(element)})")
        return sorted(result)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'added': sorted(self.added),
            'removed': sorted(self.removed),
            'modified': sorted(self.modified),
            'unchanged': sorted(self.unchanged),
            'summary': {
                'added': len(self.added),
                'removed': len(self.removed),
                'modified': len(self.modified),
                'unchanged': len(self.unchanged),
                'total': self.total,
            },
        }


def diff_commits(base: Mapping[str, Mapping[str, Any]], other: Mapping[str, Mapping[str, Any]],
                 policy: ModificationPolicy = DEFAULT_POLICY) -> CommitDiff:
    """
    Classifies every id of either commit.

    Args:
        base (Mapping): id -> element of the base commit.
        other (Mapping): id -> element of the compared commit.
        policy (ModificationPolicy, optional): Decides "modified" for ids in both.

    Returns:
        CommitDiff: Sets of ids per category.
    """
    base_ids = set(base)
    other_ids = set(other)
    added = other_ids - base_ids
    removed = base_ids - other_ids
    modified = set()
    unchanged = set()
    for element_id in base_ids & other_ids:
        if policy.is_modified(base[element_id], other[element_id]):
            modified.add(element_id)
        else:
            unchanged.add(element_id)
    logger.info("Commit diff: %d added, %d removed, %d modified", len(added), len(removed), len(modified))
    return CommitDiff(added, removed, modified, unchanged, base, other)


def load_commit_roots(server_url: str, project_id: str, commit_id: str) -> Dict[str, Dict[str, Any]]:
    """Fetches the full element of every root of a commit, keyed by id."""
    elements = {}
    for root in sysmlv2_api_helpers.get_roots(server_url, project_id, commit_id):
        root_id = root.get('@id')
        if root_id:
            elements[root_id] = sysmlv2_api_helpers.fetch_element(server_url, project_id, commit_id, root_id)
    return elements


def format_diff_report(diff: CommitDiff, base_label: str, other_label: str) -> str:
    """Plain-text diff report; the modified list is capped."""
    lines = [
        "COMMIT DIFF",
        "",
        f"Base Commit:    {base_label}",
        f"Compare Commit: {other_label}",
        "",
        "Summary",
        f"Added:     {len(diff.added)} elements",
        f"Removed:   {len(diff.removed)} elements",
        f"Modified:  {len(diff.modified)} elements",
        f"Unchanged: {len(diff.unchanged)} elements",
        f"Total:     {diff.total} elements",
        "",
    ]
    if diff.added:
        lines.append("Added Elements")
        lines.extend(f"+ {label}" for label in diff.labels(diff.added))
        lines.append("")
    if diff.removed:
        lines.append("Removed Elements")
        lines.extend(f"- {label}" for label in diff.labels(diff.removed))
        lines.append("")
    if diff.modified:
        lines.append("Modified Elements")
        modified = diff.labels(diff.modified)
        lines.extend(f"~ {label}" for label in modified[:MODIFIED_DISPLAY_LIMIT])
        if len(modified) > MODIFIED_DISPLAY_LIMIT:
            lines.append(f"... and {len(modified) - MODIFIED_DISPLAY_LIMIT} more modified elements")
        lines.append("")
    return "\n".join(lines)

#    Lazy element tree for the SysML v2 explorer.
#
#    Every tree node wraps one cached element. A node whose element has child
#    references starts with a single placeholder child; expanding it fetches
#    the children in parallel and swaps the placeholder for the real list.
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
from enum import Enum
from functools import partial
from typing import Callable, Dict, List, Optional, Any

from anytree import NodeMixin, PreOrderIter, RenderTree

from .element_cache import ElementCache, ExplorerSession
from .sysml_types import element_label, is_displayable
from .sysmlv2_api_helpers import ApiError

logger = logging.getLogger(__name__)

EXPANSION_WORKERS = 8
PLACEHOLDER_LABEL = "Loading..."


class NodeState(Enum):
    UNEXPANDED = 'unexpanded'
    EXPANDING = 'expanding'
    EXPANDED = 'expanded'


class SlotStatus(Enum):
    LOADED = 'loaded'
    FAILED = 'failed'
    FILTERED = 'filtered'


class ChildSlot:
    """Outcome of resolving one child reference during expansion."""

    def __init__(self, element_id: str, status: SlotStatus,
                 element: Optional[Dict[str, Any]] = None, reason: Optional[str] = None):
        self.element_id = element_id
        self.status = status
        self.element = element
        self.reason = reason

    def __repr__(self):
        return f"ChildSlot({self.element_id!r}, {self.status.name})"

    def to_dict(self) -> Dict[str, Any]:
        result = {'id': self.element_id, 'status': self.status.value}
        if self.element is not None:
            result['type'] = self.element.get('@type')
        if self.reason:
            result['reason'] = self.reason
        return result


def child_reference_ids(element: Dict[str, Any]) -> List[str]:
    """
    Collects the ids referenced by `ownedMember` and then `ownedFeature`.

    Ids keep their first position; a feature that is also a member appears once.
    """
    ids = []
    seen = set()
    for key in ('ownedMember', 'ownedFeature'):
        refs = element.get(key) or []
        if isinstance(refs, dict):
            refs = [refs]
        for ref in refs:
            ref_id = ref.get('@id') if isinstance(ref, dict) else None
            if ref_id and ref_id not in seen:
                seen.add(ref_id)
                ids.append(ref_id)
    return ids


class ExplorerNode(NodeMixin):
    """
    Common base of the tree nodes.

    anytree attaches new children one at a time, so every child list of a
    tree is replaced and read under the lock of the tree's root.
    """

    def __init__(self):
        self.state = NodeState.EXPANDED
        self.slots: List[ChildSlot] = []
        self._tree_lock = threading.RLock()
        self._expansion_lock = threading.Lock()

    @property
    def tree_lock(self):
        return self.root._tree_lock

    def replace_children(self, children: List["ExplorerNode"]) -> None:
        with self.tree_lock:
            self.children = children

    def visible_children(self) -> tuple:
        """Snapshot of the materialized children, never a partial list."""
        with self.tree_lock:
            return tuple(c for c in self.children if isinstance(c, ExplorerNode))

    @property
    def has_placeholder(self) -> bool:
        with self.tree_lock:
            return any(isinstance(c, PlaceholderNode) for c in self.children)


class PlaceholderNode(NodeMixin):
    name = PLACEHOLDER_LABEL

    def __init__(self, parent=None):
        self.parent = parent


class ProjectRootNode(ExplorerNode):
    """Synthetic root holding the owned members of the commit's root elements."""

    element_id = None

    def __init__(self, name: str = "Project"):
        super().__init__()
        self.name = name


class ElementTreeNode(ExplorerNode):

    def __init__(self, element: Dict[str, Any], parent=None):
        super().__init__()
        self.element = element
        self.element_id = element.get('@id')
        self.name = element_label(element)
        self.parent = parent
        if child_reference_ids(element):
            self.state = NodeState.UNEXPANDED
            PlaceholderNode(parent=self)


def _resolve_slot(cache: ElementCache, displayable_only: bool, element_id: str) -> ChildSlot:
    try:
        element = cache.get_or_fetch(element_id)
    except ApiError as e:
        logger.warning("Failed to load element %s: %s", element_id, e)
        return ChildSlot(element_id, SlotStatus.FAILED, reason=str(e))
    if displayable_only and not is_displayable(element.get('@type')):
        return ChildSlot(element_id, SlotStatus.FILTERED, element=element)
    return ChildSlot(element_id, SlotStatus.LOADED, element=element)


def resolve_children(element_ids: List[str], cache: ElementCache,
                     max_workers: int = EXPANSION_WORKERS, displayable_only: bool = True) -> List[ChildSlot]:
    """
    Resolves child ids on a bounded worker pool. The result keeps the order of `element_ids`.
    """
    if not element_ids:
        return []
    logger.info("Loading %d child elements in parallel...", len(element_ids))
    start = time.monotonic()
    worker = partial(_resolve_slot, cache, displayable_only)
    with ThreadPoolExecutor(max_workers=min(max_workers, len(element_ids))) as executor:
        slots = list(executor.map(worker, element_ids))
    elapsed_ms = (time.monotonic() - start) * 1000
    loaded = sum(1 for s in slots if s.status is SlotStatus.LOADED)
    logger.info("Parallel load completed in %.0fms (%d elements)", elapsed_ms, loaded)
    return slots


def expand(node: ExplorerNode, cache: ElementCache, max_workers: int = EXPANSION_WORKERS) -> List[ChildSlot]:
    """
    Expands a node: fetches its children and replaces the placeholder.

    Failed children are omitted from the tree and reported as FAILED slots.
    Non-displayable children are FILTERED but stay in the cache. Expanding an
    expanded node returns the recorded slots without fetching again.

    Args:
        node (ExplorerNode): The node to expand.
        cache (ElementCache): Cache of the current session.
        max_workers (int, optional): Size of the fetch pool. Defaults to 8.

    Returns:
        List[ChildSlot]: One slot per child reference, in reference order.
    """
    with node._expansion_lock:
        if node.state is NodeState.EXPANDED:
            return node.slots
        node.state = NodeState.EXPANDING
        try:
            slots = resolve_children(child_reference_ids(node.element), cache, max_workers)
        except Exception:
            node.state = NodeState.UNEXPANDED
            raise

        children = [ElementTreeNode(slot.element) for slot in slots if slot.status is SlotStatus.LOADED]
        with node.tree_lock:
            node.replace_children(children)
            node.slots = slots
            node.state = NodeState.EXPANDED

    failed = sum(1 for s in slots if s.status is SlotStatus.FAILED)
    logger.info("Expanded node: %s, %d children, %d failed", node.name, len(node.visible_children()), failed)
    return slots


def build_project_tree(session: ExplorerSession, roots: List[Dict[str, Any]],
                       max_workers: int = EXPANSION_WORKERS) -> ProjectRootNode:
    """
    Builds the top of the tree: one node per owned member of every root element.

    Root elements are cached. Members that fail to load are skipped.
    """
    root_node = ProjectRootNode()
    member_ids = []
    seen = set()
    for root in roots:
        if root.get('@id'):
            session.cache.put(root['@id'], root)
        for ref in root.get('ownedMember') or []:
            member_id = ref.get('@id')
            if member_id and member_id not in seen:
                seen.add(member_id)
                member_ids.append(member_id)

    slots = resolve_children(member_ids, session.cache, max_workers, displayable_only=False)
    root_node.replace_children([ElementTreeNode(slot.element) for slot in slots
                                if slot.status is SlotStatus.LOADED])
    root_node.slots = slots
    logger.info("Project tree built with %d top-level nodes", len(root_node.visible_children()))
    return root_node


def load_all(root: ExplorerNode, cache: ElementCache, cancel_event: Optional[threading.Event] = None,
             progress: Optional[Callable[[int], None]] = None, max_workers: int = EXPANSION_WORKERS) -> int:
    """
    Expands every node below `root`, depth first.

    The cancel flag is checked between nodes: fetches already issued for the
    current node complete, no further node is expanded.

    Returns:
        int: Number of nodes expanded by this call.
    """
    logger.info("Starting full recursive load")
    expanded = 0
    visited = set()
    stack = [root]
    while stack:
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Full recursive load cancelled after %d nodes", expanded)
            break
        node = stack.pop()
        element_id = getattr(node, 'element_id', None)
        if element_id is not None:
            if element_id in visited:
                continue
            visited.add(element_id)
        if node.state is not NodeState.EXPANDED:
            expand(node, cache, max_workers)
            expanded += 1
            if progress is not None:
                progress(expanded)
        stack.extend(reversed(node.visible_children()))
    logger.info("Full recursive load complete: %d nodes, %d elements cached", expanded, len(cache))
    return expanded


def find_node_by_element_id(root: ExplorerNode, element_id: str) -> Optional[ElementTreeNode]:
    with root.tree_lock:
        for node in PreOrderIter(root):
            if getattr(node, 'element_id', None) == element_id:
                return node
    return None


def count_tree_nodes(root: Optional[ExplorerNode]) -> int:
    """Counts materialized nodes including the root; placeholders are not counted."""
    if root is None:
        return 0
    with root.tree_lock:
        return sum(1 for node in PreOrderIter(root) if isinstance(node, ExplorerNode))


def tree_to_dict(node: ExplorerNode, max_depth: Optional[int] = None, _depth: int = 0) -> Dict[str, Any]:
    """JSON view of a (sub)tree. Unexpanded nodes report no children."""
    with node.tree_lock:
        result = {
            'id': node.element_id,
            'label': node.name,
            'state': node.state.value,
        }
        if isinstance(node, ElementTreeNode):
            result['type'] = node.element.get('@type')
        failed = [s.element_id for s in node.slots if s.status is SlotStatus.FAILED]
        if failed:
            result['failed'] = failed
        children = node.visible_children()
        if max_depth is not None and _depth >= max_depth:
            result['children'] = []
            result['truncated'] = bool(children)
        else:
            result['children'] = [tree_to_dict(child, max_depth, _depth + 1) for child in children]
    return result


def render_tree(root: ExplorerNode) -> str:
    """Plain-text tree, placeholders included."""
    with root.tree_lock:
        return "\n".join(f"{pre}{node.name}" for pre, _, node in RenderTree(root))


def compare_load_performance(session: ExplorerSession, sample_size: int = 50,
                             max_workers: int = EXPANSION_WORKERS) -> Dict[str, Any]:
    """
    Times sequential against parallel fetching of already cached elements.

    Each run fetches into its own scratch cache so both runs hit the server
    and the session cache is left untouched.

    Raises:
        ValueError: If fewer than 10 elements are cached.
    """
    test_ids = session.cache.ids()[:sample_size]
    if len(test_ids) < 10:
        raise ValueError("Not enough elements in cache. Please load a project first.")

    def fetch(scratch, element_id):
        try:
            scratch.get_or_fetch(element_id)
        except ApiError as e:
            logger.warning("Performance test fetch of %s failed: %s", element_id, e)

    scratch = ElementCache(session.cache.fetcher)
    start = time.monotonic()
    for element_id in test_ids:
        fetch(scratch, element_id)
    sequential_ms = (time.monotonic() - start) * 1000

    worker = partial(fetch, ElementCache(session.cache.fetcher))
    start = time.monotonic()
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        list(executor.map(worker, test_ids))
    parallel_ms = (time.monotonic() - start) * 1000

    speedup = (sequential_ms - parallel_ms) / sequential_ms * 100 if sequential_ms else 0.0
    results = {
        'count': len(test_ids),
        'sequential_ms': round(sequential_ms),
        'parallel_ms': round(parallel_ms),
        'speedup_percent': round(speedup, 1),
    }
    logger.info("Performance test: %s", results)
    return results

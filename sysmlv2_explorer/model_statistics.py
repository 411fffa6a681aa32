#    Model statistics and traceability matrix over the element cache.
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

import csv
import io
from collections import Counter
from typing import Dict, List, Optional, Any

from .element_cache import ElementCache
from .element_tree import ExplorerNode, count_tree_nodes
from .sysml_types import element_name, short_type
from .sysmlv2_api_helpers import REQUIREMENT_TYPES, filter_by_type

# Element properties that link to other elements in the matrix
RELATIONSHIP_PROPERTIES = [
    'ownedMember', 'ownedFeature', 'client', 'supplier', 'source', 'target',
    'satisfiedRequirement', 'satisfyingFeature',
]


def type_counts(elements: List[Dict[str, Any]]) -> List[tuple]:
    """(type, count) pairs, most frequent first."""
    counts = Counter(el.get('@type') or 'Unknown' for el in elements)
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


def collect_statistics(cache: ElementCache, tree_root: Optional[ExplorerNode] = None) -> Dict[str, Any]:
    elements = [element for _, element in cache.items()]
    counts = type_counts(elements)
    return {
        'total_elements': len(elements),
        'loaded_nodes': count_tree_nodes(tree_root),
        'unique_types': len(counts),
        'type_counts': counts,
    }


def format_statistics(stats: Dict[str, Any], project_id: str = '', commit_id: str = '') -> str:
    lines = [
        "MODEL STATISTICS",
        "",
        f"Project: {project_id[:8]}...",
        f"Commit:  {commit_id[:8]}...",
        "",
        "Overview",
        f"Total Elements Cached: {stats['total_elements']}",
        f"Tree Nodes Loaded:     {stats['loaded_nodes']}",
        f"Unique Element Types:  {stats['unique_types']}",
        "",
        "Element Types",
    ]
    lines.extend(f"{count:>5}  {element_type}" for element_type, count in stats['type_counts'])
    return "\n".join(lines)


def format_type_summary(elements: List[Dict[str, Any]]) -> str:
    lines = [f"{'Element Type':<40} | Count", "-" * 60]
    lines.extend(f"{element_type:<40} | {count}" for element_type, count in type_counts(elements))
    return "\n".join(lines)


def requirements_from(elements: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return filter_by_type(elements, *REQUIREMENT_TYPES)


def build_relationship_map(cache: ElementCache) -> Dict[str, Dict[str, str]]:
    """
    Maps source id -> target id -> comma separated relationship properties.

    Only targets present in the cache are recorded.
    """
    relationship_map = {}
    for element_id, element in cache.items():
        targets = {}
        for prop in RELATIONSHIP_PROPERTIES:
            related = element.get(prop)
            if not related:
                continue
            refs = related if isinstance(related, list) else [related]
            for ref in refs:
                ref_id = ref.get('@id') if isinstance(ref, dict) else None
                if ref_id and ref_id in cache:
                    targets[ref_id] = f"{targets[ref_id]},{prop}" if ref_id in targets else prop
        relationship_map[element_id] = targets
    return relationship_map


def traceability_matrix(cache: ElementCache, max_types: int = 10, per_type: int = 10) -> Dict[str, Any]:
    """
    Builds a square element-by-element matrix of the relationships in the cache.

    Rows and columns take up to `per_type` elements from each of the first
    `max_types` element types, types in alphabetical order.
    """
    names = {}
    by_type = {}
    for element_id, element in cache.items():
        names[element_id] = element_name(element) or element_id[:8]
        by_type.setdefault(short_type(element), []).append(element_id)

    axis = []
    for element_type in sorted(by_type)[:max_types]:
        axis.extend(by_type[element_type][:per_type])

    relationship_map = build_relationship_map(cache)
    cells = [[relationship_map.get(row_id, {}).get(col_id) for col_id in axis] for row_id in axis]
    return {
        'rows': [{'id': element_id, 'name': names[element_id]} for element_id in axis],
        'columns': [{'id': element_id, 'name': names[element_id]} for element_id in axis],
        'cells': cells,
    }


def traceability_csv(matrix: Dict[str, Any]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow([''] + [col['name'] for col in matrix['columns']])
    for row, cells in zip(matrix['rows'], matrix['cells']):
        writer.writerow([row['name']] + [cell or '' for cell in cells])
    return output.getvalue()

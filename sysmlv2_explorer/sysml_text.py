#    Reconstructs SysML v2 textual notation from cached element JSON.
#    The API has no native text export, so the declarations are rebuilt from
#    the element types and the ownership references.
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
import re
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional, Any

from .element_cache import ElementCache, ExplorerSession, load_roots
from .element_tree import child_reference_ids
from .sysml_types import element_name, escape_name, is_displayable, keyword_for
from .sysmlv2_api_helpers import ApiError

logger = logging.getLogger(__name__)

INDENT = "    "

Lookup = Callable[[str], Optional[Dict[str, Any]]]


def cache_lookup(cache: ElementCache, fetch_missing: bool = False) -> Lookup:
    """
    Returns an element lookup over the cache.

    With `fetch_missing`, uncached elements are fetched; elements that cannot
    be fetched are logged and treated as absent.
    """
    if not fetch_missing:
        return cache.get

    def lookup(element_id):
        try:
            return cache.get_or_fetch(element_id)
        except ApiError as e:
            logger.warning("Could not process element %s: %s", element_id, e)
            return None
    return lookup


def generate_sysml_text(element: Dict[str, Any], lookup: Lookup, indent_level: int = 0,
                        _ancestors: frozenset = frozenset()) -> str:
    """
    Renders one element and its displayable children.

    An element renders as ``keyword name { ... }`` when at least one displayable
    child renders, otherwise as ``keyword name;``. Types without a keyword render
    as a ``/* Type */`` comment and never nest.

    Args:
        element (Dict): The element to render.
        lookup (Callable): Resolves a child id to its element, or None.
        indent_level (int, optional): Nesting depth. Defaults to 0.

    Returns:
        str: The textual notation, one declaration per line.
    """
    indent = INDENT * indent_level
    element_type = element.get('@type')

    if element_type == 'Comment':
        body = element.get('body') or ''
        return f"{indent}/* {body} */\n" if body else ""

    keyword = keyword_for(element_type)
    if keyword is None:
        return f"{indent}/* {element_type} */\n"

    name = element_name(element)
    declaration = f"{indent}{keyword} {escape_name(name)}" if name else f"{indent}{keyword}"

    ancestors = _ancestors | {element.get('@id')}
    child_texts = []
    for child_id in child_reference_ids(element):
        if child_id in ancestors:
            continue
        child = lookup(child_id)
        if child is None or not is_displayable(child.get('@type')):
            continue
        text = generate_sysml_text(child, lookup, indent_level + 1, ancestors)
        if text:
            child_texts.append(text)

    if child_texts:
        return f"{declaration} {{\n{''.join(child_texts)}{indent}}}\n"
    return f"{declaration};\n"


def export_project_text(session: ExplorerSession, project_name: str, element_id: Optional[str] = None) -> str:
    """
    Builds the export document of the session's commit.

    Without `element_id` every owned member of every root element is exported,
    otherwise only that element and its children.
    """
    lookup = cache_lookup(session.cache, fetch_missing=True)
    parts = [
        "// SysML v2 Export\n",
        f"// Project: {project_name}\n",
        f"// Exported: {datetime.now():%Y-%m-%d %H:%M:%S}\n",
        f"// Commit: {session.commit_id}\n",
        "\n",
    ]

    if element_id:
        parts.append(generate_sysml_text(session.cache.get_or_fetch(element_id), lookup))
        return "".join(parts)

    roots = load_roots(session)
    logger.info("Exporting %d root element(s)", len(roots))
    for root in roots:
        for ref in root.get('ownedMember') or []:
            member = lookup(ref.get('@id'))
            if member is not None:
                parts.append(generate_sysml_text(member, lookup))
                parts.append("\n")
    return "".join(parts)


def save_export(content: str, project_name: str, output_dir: str = "output") -> Path:
    """Writes the export to ``<output_dir>/sysml_export_<name>_<timestamp>.sysml``."""
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    safe_name = re.sub(r"[^a-zA-Z0-9]", "_", project_name)
    path = directory / f"sysml_export_{safe_name}_{datetime.now():%Y%m%d_%H%M%S}.sysml"
    path.write_text(content, encoding="utf-8")
    logger.info("Export saved to: %s", path)
    return path

#    Element type tables for the SysML v2 explorer: which element types are
#    shown in the tree and which textual-notation keyword each one uses.
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

from typing import Dict, Optional, Any

# Adding a new element type is a change to this table only.
# Types missing here have no keyword: the text generator renders them as
# a `/* Type */` comment placeholder.
ELEMENT_KEYWORDS = {
    'Package': 'package',
    'Namespace': 'namespace',
    'PartDefinition': 'part def',
    'PartUsage': 'part',
    'AttributeDefinition': 'attribute def',
    'AttributeUsage': 'attribute',
    'ItemDefinition': 'item def',
    'ItemUsage': 'item',
    'PortDefinition': 'port def',
    'PortUsage': 'port',
    'InterfaceDefinition': 'interface def',
    'InterfaceUsage': 'interface',
    'ConnectionDefinition': 'connection def',
    'ConnectionUsage': 'connection',
    'ActionDefinition': 'action def',
    'ActionUsage': 'action',
    'StateDefinition': 'state def',
    'StateUsage': 'state',
    'RequirementDefinition': 'requirement def',
    'RequirementUsage': 'requirement',
    'ConstraintDefinition': 'constraint def',
    'ConstraintUsage': 'constraint',
    'ViewDefinition': 'view def',
    'ViewUsage': 'view',
    'ViewpointDefinition': 'viewpoint def',
    'ViewpointUsage': 'viewpoint',
    'RenderingDefinition': 'rendering def',
    'RenderingUsage': 'rendering',
    'Comment': 'comment',
    'Documentation': 'doc',
    'EnumerationDefinition': 'enum def',
    'EnumerationUsage': 'enum',
    'OccurrenceDefinition': 'occurrence def',
    'OccurrenceUsage': 'occurrence',
    'AllocationDefinition': 'allocation def',
    'AllocationUsage': 'allocate',
    'AnalysisCaseDefinition': 'analysis def',
    'AnalysisCaseUsage': 'analysis',
    'CalculationDefinition': 'calc def',
    'CalculationUsage': 'calc',
    'CaseDefinition': 'case def',
    'CaseUsage': 'case',
    'ConcernDefinition': 'concern def',
    'ConcernUsage': 'concern',
    'FlowConnectionUsage': 'flow',
    'MetadataDefinition': 'metadata def',
    'MetadataUsage': 'metadata',
}

# Types eligible for tree and text rendering
DISPLAYABLE_TYPES = frozenset(ELEMENT_KEYWORDS)


def keyword_for(element_type: Optional[str]) -> Optional[str]:
    """Returns the textual-notation keyword, or None for an unknown type."""
    return ELEMENT_KEYWORDS.get(element_type)


def is_displayable(element_type: Optional[str]) -> bool:
    return element_type in DISPLAYABLE_TYPES


def element_name(element: Dict[str, Any]) -> Optional[str]:
    """
    Returns the display name of an element: `name`, then `declaredName`, then the
    last segment of `qualifiedName` without surrounding quotes.
    """
    name = element.get('name') or element.get('declaredName')
    if name is None:
        qualified_name = element.get('qualifiedName')
        if qualified_name:
            name = qualified_name.split('::')[-1].strip("'")
    return name


def escape_name(name: Optional[str]) -> Optional[str]:
    """Quotes names that are not plain identifiers in the textual notation."""
    if name is None:
        return None
    if any(c in name for c in " '()"):
        escaped = name.replace("'", "\\'")
        return f"'{escaped}'"
    return name


def short_type(element: Dict[str, Any]) -> str:
    element_type = element.get('@type') or 'Unknown'
    return element_type.split('.')[-1]


def element_label(element: Dict[str, Any]) -> str:
    """Label used in the tree and reports, e.g. ``Motor [PartDefinition]``."""
    name = element_name(element) or (element.get('@id') or '')[:8]
    return f"{name} [{short_type(element)}]"

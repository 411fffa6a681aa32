#    Static HTML export of the element cache: a searchable navigation sidebar,
#    project statistics and a property view for every cached element.
#    The whole document is rendered in memory.
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
from datetime import date
from pathlib import Path
from typing import Optional

from jinja2 import Environment
from markupsafe import Markup

from .element_cache import ElementCache
from .model_statistics import type_counts
from .sysml_types import element_name, short_type

logger = logging.getLogger(__name__)

_environment = Environment(autoescape=True)

REPORT_TEMPLATE = _environment.from_string("""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>SysML v2 Project Export</title>
    <style>
        * { box-sizing: border-box; margin: 0; padding: 0; }
        body { font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; font-size: 14px; line-height: 1.6; }
        .container { display: flex; height: 100vh; }
        .sidebar { width: 300px; background: #2c3e50; color: #ecf0f1; overflow-y: auto; }
        .content { flex: 1; padding: 20px; overflow-y: auto; background: #f5f5f5; }
        .header { background: #34495e; padding: 15px; border-bottom: 2px solid #1abc9c; }
        .header h1 { font-size: 18px; color: #1abc9c; }
        .header p { font-size: 12px; color: #95a5a6; margin-top: 5px; }
        .nav-tree { padding: 10px; }
        .nav-item { padding: 8px 12px; cursor: pointer; border-left: 3px solid transparent; }
        .nav-item:hover { background: #34495e; border-left-color: #1abc9c; }
        .nav-item.active { background: #34495e; border-left-color: #e74c3c; }
        .nav-item-label { display: block; color: #ecf0f1; }
        .nav-item-type { font-size: 11px; color: #95a5a6; margin-left: 5px; }
        .element-card { background: white; border-radius: 8px; padding: 20px; margin-bottom: 20px; box-shadow: 0 2px 4px rgba(0,0,0,0.1); }
        .element-title { font-size: 24px; color: #2c3e50; margin-bottom: 5px; }
        .element-type { display: inline-block; background: #3498db; color: white; padding: 4px 12px; border-radius: 4px; font-size: 12px; margin-bottom: 15px; }
        .element-id { font-size: 12px; color: #7f8c8d; font-family: monospace; margin-bottom: 15px; }
        .property-table { width: 100%; border-collapse: collapse; margin-top: 10px; }
        .property-table th { background: #ecf0f1; padding: 10px; text-align: left; border-bottom: 2px solid #bdc3c7; }
        .property-table td { padding: 10px; border-bottom: 1px solid #ecf0f1; }
        .property-key { font-weight: 600; color: #2c3e50; width: 30%; }
        .property-value { color: #34495e; font-family: 'Courier New', monospace; font-size: 13px; white-space: pre-wrap; }
        .search-box { padding: 10px; background: #34495e; }
        .search-box input { width: 100%; padding: 8px; border: none; border-radius: 4px; background: #ecf0f1; }
        .stats { background: #e8f4f8; border-left: 4px solid #3498db; padding: 15px; border-radius: 4px; margin-bottom: 20px; }
        .stats-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(150px, 1fr)); gap: 10px; }
        .stat-item { text-align: center; }
        .stat-value { font-size: 24px; font-weight: bold; color: #3498db; }
        .stat-label { font-size: 12px; color: #7f8c8d; text-transform: uppercase; }
    </style>
</head>
<body>
    <div class="container">
        <div class="sidebar">
            <div class="header">
                <h1>SysML v2 Export</h1>
                <p>Project: {{ project_id[:8] }}...</p>
                <p>Commit: {{ commit_id[:8] }}...</p>
            </div>
            <div class="search-box">
                <input type="text" id="searchBox" placeholder="Search elements..." onkeyup="filterElements()">
            </div>
            <div class="nav-tree" id="navTree">
{% for item in nav_items %}
                <div class="nav-item" data-id="{{ item.id }}" onclick="showElement(this)">
                    <span class="nav-item-label">{{ item.name }}</span>
                    <span class="nav-item-type">{{ item.type }}</span>
                </div>
{% endfor %}
            </div>
        </div>
        <div class="content" id="content">
            <div class="stats">
                <h2 style="margin-bottom: 15px; color: #2c3e50;">Project Statistics</h2>
                <div class="stats-grid">
                    <div class="stat-item">
                        <div class="stat-value">{{ total_elements }}</div>
                        <div class="stat-label">Total Elements</div>
                    </div>
                    <div class="stat-item">
                        <div class="stat-value">{{ unique_types }}</div>
                        <div class="stat-label">Element Types</div>
                    </div>
                    <div class="stat-item">
                        <div class="stat-value">{{ export_date }}</div>
                        <div class="stat-label">Export Date</div>
                    </div>
                </div>
            </div>
            <p style="color: #7f8c8d; text-align: center; margin-top: 50px;">Select an element from the sidebar to view details</p>
        </div>
    </div>
    <script>
        const elements = {{ elements_json }};

        function showElement(item) {
            const id = item.dataset.id;
            const element = elements[id];
            if (!element) return;
            const name = element.name || element.declaredName || id.substring(0, 8);
            const shortType = (element['@type'] || 'Unknown').split('.').pop();
            let html = '<div class="element-card">';
            html += '<h1 class="element-title">' + escapeHtml(name) + '</h1>';
            html += '<span class="element-type">' + escapeHtml(shortType) + '</span>';
            html += '<div class="element-id">ID: ' + escapeHtml(id) + '</div>';
            html += '<table class="property-table"><thead><tr><th>Property</th><th>Value</th></tr></thead><tbody>';
            for (const [key, value] of Object.entries(element)) {
                if (key === '@type' || key === '@id') continue;
                const valueStr = typeof value === 'object' ? JSON.stringify(value, null, 2) : String(value);
                html += '<tr><td class="property-key">' + escapeHtml(key) + '</td>';
                html += '<td class="property-value">' + escapeHtml(valueStr) + '</td></tr>';
            }
            html += '</tbody></table></div>';
            document.getElementById('content').innerHTML = html;
            document.querySelectorAll('.nav-item').forEach(el => el.classList.remove('active'));
            item.classList.add('active');
        }

        function filterElements() {
            const searchText = document.getElementById('searchBox').value.toLowerCase();
            document.querySelectorAll('.nav-item').forEach(item => {
                item.style.display = item.textContent.toLowerCase().includes(searchText) ? 'block' : 'none';
            });
        }

        function escapeHtml(text) {
            const div = document.createElement('div');
            div.textContent = text;
            return div.innerHTML;
        }
    </script>
</body>
</html>
""")


def _script_safe_json(data) -> Markup:
    # "</" would close the surrounding <script> element
    return Markup(json.dumps(data, default=str).replace("</", "<\\/"))


def generate_html_report(cache: ElementCache, project_id: str, commit_id: str,
                         export_date: Optional[date] = None) -> str:
    """
    Renders the whole cache as a single self-contained HTML document.

    Args:
        cache (ElementCache): Cache of the exported session.
        project_id (str): Shown in the sidebar header.
        commit_id (str): Shown in the sidebar header.
        export_date (date, optional): Defaults to today.

    Returns:
        str: The HTML document.
    """
    items = cache.items()
    elements = [element for _, element in items]
    nav_items = [
        {'id': element_id, 'name': element_name(element) or element_id[:8], 'type': short_type(element)}
        for element_id, element in items
    ]
    return REPORT_TEMPLATE.render(
        project_id=project_id or '',
        commit_id=commit_id or '',
        nav_items=nav_items,
        total_elements=len(items),
        unique_types=len(type_counts(elements)),
        export_date=(export_date or date.today()).isoformat(),
        elements_json=_script_safe_json(dict(items)),
    )


def write_html_report(path, cache: ElementCache, project_id: str, commit_id: str) -> Path:
    """
    Writes the HTML export to `path`.

    Raises:
        ValueError: If the cache is empty.
    """
    if len(cache) == 0:
        raise ValueError("Please load a project first. Use 'load all' for a complete export.")
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(generate_html_report(cache, project_id, commit_id), encoding="utf-8")
    logger.info("HTML export complete: %s, %d elements", output.resolve(), len(cache))
    return output


def write_json_dump(path, cache: ElementCache) -> Path:
    """Writes the cached elements as one JSON object keyed by element id."""
    if len(cache) == 0:
        raise ValueError("Please load a project first.")
    output = Path(path)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(dict(cache.items()), indent=2, default=str), encoding="utf-8")
    logger.info("JSON dump complete: %s, %d elements", output.resolve(), len(cache))
    return output

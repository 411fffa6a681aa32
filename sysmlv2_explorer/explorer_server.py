#
#   Local Flask server for exploring a SysML v2 model server
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
import os
import sys
import threading
from functools import wraps

from flask import Flask, request, jsonify, Response

from . import sysmlv2_api_helpers
from .commit_diff import ModificationPolicy, diff_commits, format_diff_report, load_commit_roots
from .credentials import CredentialsError, get_credentials
from .diagnostics import setup_diagnostics, truncate_message
from .element_cache import ExplorerSession, NotFoundInCache, load_project_dependencies, load_roots
from .element_tree import (build_project_tree, compare_load_performance, count_tree_nodes, expand,
                           find_node_by_element_id, load_all, tree_to_dict)
from .html_report import write_html_report, write_json_dump
from .model_statistics import collect_statistics, format_statistics, traceability_csv, traceability_matrix
from .project_selection import commit_items, probe_projects
from .sysml_text import cache_lookup, generate_sysml_text
from .sysml_types import element_label
from .sysmlv2_api_helpers import RemoteError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8765
OUTPUT_DIR = "output"

app = Flask(__name__)
app.config['JSONIFY_PRETTYPRINT_REGULAR'] = True  # Optional: Pretty print JSON
app.config['JSONIFY_MIMETYPE'] = 'application/json'

# Global explorer state. Session and tree are replaced as a pair under
# STATE_LOCK; a project or commit switch never mutates the old session.
EXPLORER_STATE = {
    'server_url': None,
    'session': None,
    'tree': None,
    'projects': [],
    'status': 'Ready',
    'load_all': None,
}
STATE_LOCK = threading.Lock()


def configure_explorer(credentials) -> None:
    sysmlv2_api_helpers.configure_session(credentials.username, credentials.password, credentials.verify_ssl)
    EXPLORER_STATE['server_url'] = credentials.base_url
    logger.info("Explorer configured for %s", credentials.base_url)


def set_status(message: str) -> None:
    EXPLORER_STATE['status'] = message
    logger.info("Status: %s", message)


def current_selection():
    """Returns (session, tree) or raises ValueError if no project is selected."""
    with STATE_LOCK:
        session, tree = EXPLORER_STATE['session'], EXPLORER_STATE['tree']
    if session is None or tree is None:
        raise ValueError("Please select a project first.")
    return session, tree


def load_all_progress():
    running = EXPLORER_STATE['load_all']
    if not running:
        return None
    return {'running': running['running'], 'expanded': running['expanded']}


def server_url() -> str:
    url = EXPLORER_STATE['server_url']
    if not url:
        raise ValueError("The explorer is not connected to a server.")
    return url


def required(input_data, *names):
    values = [input_data.get(name) for name in names]
    if not all(values):
        raise ValueError(f"{', '.join(names)} required.")
    return values if len(values) > 1 else values[0]


################################################################################################################
#
# Decorator to handle errors in routes
#
def handle_errors(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except TransportError as e:
            logger.error("Transport error in %s: %s", func.__name__, e)
            return jsonify({"error": "Could not reach the model server (connection problem or timeout)."}), 504
        except RemoteError as e:
            logger.error("Remote error in %s: %s", func.__name__, e)
            return jsonify({"error": truncate_message(str(e)), "status": e.status}), 502
        except NotFoundInCache as e:
            logger.warning("Not found in %s: %s", func.__name__, e)
            return jsonify({"error": truncate_message(str(e))}), 404
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        except Exception as e:
            logger.exception("Error in %s", func.__name__)
            return jsonify({"error": truncate_message(str(e))}), 500
    return wrapper


################################################################################################################
#
# API Endpoints
#

#
# Current explorer state
#
@app.route('/api/status', methods=['GET'])
@handle_errors
def api_status():
    with STATE_LOCK:
        session, tree = EXPLORER_STATE['session'], EXPLORER_STATE['tree']
    return jsonify({
        'running': True,
        'server_url': EXPLORER_STATE['server_url'],
        'projects_loaded': len(EXPLORER_STATE['projects']),
        'current_project': session.project_id if session else None,
        'current_commit': session.commit_id if session else None,
        'cached_elements': len(session.cache) if session else 0,
        'tree_nodes': count_tree_nodes(tree),
        'status': EXPLORER_STATE['status'],
        'load_all': load_all_progress(),
    })

#
# Retrieve List of Projects with their accessibility
#
@app.route('/api/projects', methods=['GET'])
@handle_errors
def api_projects():
    set_status("Loading projects...")
    projects = sysmlv2_api_helpers.get_projects(server_url())
    items = probe_projects(server_url(), projects)
    EXPLORER_STATE['projects'] = items
    set_status(f"Loaded {len(items)} projects")
    return jsonify([item.to_dict() for item in items])

#
# Retrieve List of Commits for a given ProjectID
#
@app.route('/api/commits', methods=['POST'])
@handle_errors
def api_commits():
    input_data = request.get_json(silent=True) or {}
    logger.info("/api/commits called with data: %s", input_data)
    project_id = required(input_data, 'project_id')

    commits = sysmlv2_api_helpers.get_commits(server_url(), project_id)
    return jsonify([item.to_dict() for item in commit_items(commits)])


def select_project(project_id: str, commit_id: str = None):
    """Creates a new session for the project/commit and builds its tree."""
    if not commit_id:
        commits = sysmlv2_api_helpers.get_commits(server_url(), project_id)
        if not commits:
            raise ValueError(f"No commits found for project {project_id}")
        commit_id = commits[-1]['@id']

    set_status("Loading project elements...")
    session = ExplorerSession(server_url(), project_id, commit_id)
    load_project_dependencies(session)
    roots = load_roots(session)
    tree = build_project_tree(session, roots)

    with STATE_LOCK:
        running = EXPLORER_STATE['load_all']
        if running and running.get('cancel_event'):
            running['cancel_event'].set()
        EXPLORER_STATE['session'] = session
        EXPLORER_STATE['tree'] = tree
        EXPLORER_STATE['load_all'] = None
    set_status(f"Loaded project - Commit: {commit_id[:8]}...")
    return session, tree, roots

#
# Select a project (and optionally a commit); the latest commit is the default
#
@app.route('/api/select', methods=['POST'])
@handle_errors
def api_select():
    input_data = request.get_json(silent=True) or {}
    logger.info("/api/select called with data: %s", input_data)
    project_id = required(input_data, 'project_id')

    session, tree, roots = select_project(project_id, input_data.get('commit_id'))
    return jsonify({
        'project_id': session.project_id,
        'commit_id': session.commit_id,
        'roots': len(roots),
        'cached_elements': len(session.cache),
        'tree': tree_to_dict(tree, max_depth=1),
    })

#
# Reload the current project and commit with an empty cache
#
@app.route('/api/refresh', methods=['POST'])
@handle_errors
def api_refresh():
    session, _ = current_selection()
    session, tree, roots = select_project(session.project_id, session.commit_id)
    return jsonify({'project_id': session.project_id, 'commit_id': session.commit_id, 'roots': len(roots)})

#
# Tree view
#
@app.route('/api/tree', methods=['GET'])
@handle_errors
def api_tree():
    _, tree = current_selection()
    depth = request.args.get('depth', type=int)
    return jsonify(tree_to_dict(tree, max_depth=depth))

#
# Expand one tree node
#
@app.route('/api/tree/expand', methods=['POST'])
@handle_errors
def api_tree_expand():
    input_data = request.get_json(silent=True) or {}
    element_id = required(input_data, 'element_id')
    session, tree = current_selection()

    node = find_node_by_element_id(tree, element_id)
    if node is None:
        raise NotFoundInCache(element_id, "not materialized in the tree")
    slots = expand(node, session.cache)
    return jsonify({
        'node': tree_to_dict(node, max_depth=1),
        'slots': [slot.to_dict() for slot in slots],
    })

#
# Expand the whole tree, by default in the background
#
@app.route('/api/tree/load-all', methods=['POST'])
@handle_errors
def api_tree_load_all():
    input_data = request.get_json(silent=True) or {}
    session, tree = current_selection()

    with STATE_LOCK:
        running = EXPLORER_STATE['load_all']
        if running and running['running']:
            raise ValueError("Load all is already running.")
        progress_state = {'running': True, 'expanded': 0, 'cancel_event': threading.Event()}
        EXPLORER_STATE['load_all'] = progress_state

    def progress(count):
        progress_state['expanded'] = count

    def run():
        try:
            count = load_all(tree, session.cache, progress_state['cancel_event'], progress)
            set_status(f"Loaded all elements: {count} nodes expanded, {len(session.cache)} total elements")
        except Exception:
            logger.exception("load_all failed")
            set_status("Error loading all elements")
        finally:
            progress_state['running'] = False

    if input_data.get('background', True):
        set_status("Loading all elements...")
        threading.Thread(target=run, name="load-all", daemon=True).start()
        return jsonify({'started': True}), 202

    run()
    return jsonify({'started': True, 'expanded': progress_state['expanded'], 'cached_elements': len(session.cache)})

#
# Cancel a running load-all
#
@app.route('/api/tree/cancel', methods=['POST'])
@handle_errors
def api_tree_cancel():
    with STATE_LOCK:
        running = EXPLORER_STATE['load_all']
    if not running or not running['running']:
        return jsonify({'cancelled': False})
    running['cancel_event'].set()
    set_status("Cancelling load all...")
    return jsonify({'cancelled': True})

#
# Get Generic Element by ID
#
@app.route('/api/element', methods=['POST'])
@handle_errors
def api_element():
    input_data = request.get_json(silent=True) or {}
    element_id = required(input_data, 'element_id')
    session, _ = current_selection()

    element = session.navigate(element_id)
    return jsonify({'label': element_label(element), 'element': element})

#
# SysML v2 textual notation of an element
#
@app.route('/api/sysml-text', methods=['POST'])
@handle_errors
def api_sysml_text():
    input_data = request.get_json(silent=True) or {}
    element_id = required(input_data, 'element_id')
    session, _ = current_selection()

    element = session.navigate(element_id)
    lookup = cache_lookup(session.cache, fetch_missing=bool(input_data.get('fetch_missing', False)))
    text = generate_sysml_text(element, lookup)
    return jsonify({'text': text, 'length': len(text)})

#
# Compare the root elements of two commits of the current project
#
@app.route('/api/diff', methods=['POST'])
@handle_errors
def api_diff():
    input_data = request.get_json(silent=True) or {}
    base_commit_id, compare_commit_id = required(input_data, 'base_commit_id', 'compare_commit_id')
    session, _ = current_selection()
    if base_commit_id == compare_commit_id:
        raise ValueError("Please select two different commits.")

    set_status("Comparing commits...")
    base = load_commit_roots(session.server_url, session.project_id, base_commit_id)
    other = load_commit_roots(session.server_url, session.project_id, compare_commit_id)
    policy = ModificationPolicy(input_data.get('ignored_fields') or ())
    diff = diff_commits(base, other, policy)
    set_status("Commit comparison complete")

    result = diff.to_dict()
    result['report'] = format_diff_report(diff, base_commit_id, compare_commit_id)
    return jsonify(result)

#
# Model statistics
#
@app.route('/api/statistics', methods=['GET'])
@handle_errors
def api_statistics():
    session, tree = current_selection()
    stats = collect_statistics(session.cache, tree)
    stats['report'] = format_statistics(stats, session.project_id, session.commit_id)
    stats['type_counts'] = [list(item) for item in stats['type_counts']]
    return jsonify(stats)

#
# Traceability matrix as JSON or CSV
#
@app.route('/api/traceability', methods=['GET'])
@handle_errors
def api_traceability():
    session, _ = current_selection()
    if len(session.cache) == 0:
        raise ValueError("Please load a project first.")
    matrix = traceability_matrix(session.cache)
    if request.args.get('format') == 'csv':
        return Response(traceability_csv(matrix), mimetype='text/csv',
                        headers={'Content-Disposition': 'attachment; filename=traceability.csv'})
    return jsonify(matrix)

#
# Export the cache as a static HTML report
#
@app.route('/api/export/html', methods=['POST'])
@handle_errors
def api_export_html():
    input_data = request.get_json(silent=True) or {}
    session, _ = current_selection()
    path = input_data.get('path') or os.path.join(OUTPUT_DIR, f"sysml_export_{session.project_id[:8]}.html")

    set_status("Exporting to HTML...")
    output = write_html_report(path, session.cache, session.project_id, session.commit_id)
    set_status(f"HTML export complete: {output.name}")
    return jsonify({'path': str(output), 'elements': len(session.cache)})

#
# Dump the cached elements as JSON
#
@app.route('/api/export/json', methods=['POST'])
@handle_errors
def api_export_json():
    input_data = request.get_json(silent=True) or {}
    session, _ = current_selection()
    path = input_data.get('path') or os.path.join(OUTPUT_DIR, f"sysml_elements_{session.project_id[:8]}.json")
    output = write_json_dump(path, session.cache)
    return jsonify({'path': str(output), 'elements': len(session.cache)})

#
# Sequential vs parallel loading
#
@app.route('/api/performance', methods=['POST'])
@handle_errors
def api_performance():
    input_data = request.get_json(silent=True) or {}
    session, _ = current_selection()
    return jsonify(compare_load_performance(session, int(input_data.get('sample_size', 50))))


def main(argv=None) -> int:
    """Starts the explorer server. Arguments: [username password]."""
    argv = sys.argv[1:] if argv is None else argv
    setup_diagnostics()
    try:
        credentials = get_credentials(argv)
    except CredentialsError as e:
        print(f"Error: {e}")
        return 1
    configure_explorer(credentials)
    port = int(os.environ.get("SYSMLV2_EXPLORER_PORT", DEFAULT_PORT))
    print(f"Explorer API available at http://localhost:{port}/api/status")
    app.run(port=port, threaded=True)
    return 0


if __name__ == '__main__':
    sys.exit(main())

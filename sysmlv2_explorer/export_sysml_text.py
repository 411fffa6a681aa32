#    Exports SysML v2 textual notation from a project via the SysMLv2 API.
#
#    Usage: sysmlv2-export-text [username password [projectId [elementId]]]
#      - no projectId: lists available projects
#      - projectId only: exports the latest commit of the project
#      - projectId and elementId: exports that element and its children
#
#    Output: output/sysml_export_<project>_<timestamp>.sysml
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

import argparse
import logging
import sys

from . import sysmlv2_api_helpers
from .credentials import CredentialsError, get_credentials
from .diagnostics import setup_diagnostics, write_error_report
from .element_cache import ExplorerSession
from .sysml_text import export_project_text, save_export

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 2000
OUTPUT_DIR = "output"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export SysML v2 textual notation from a model server")
    parser.add_argument("username", nargs="?")
    parser.add_argument("password", nargs="?")
    parser.add_argument("project_id", nargs="?")
    parser.add_argument("element_id", nargs="?")
    return parser


def list_projects(server_url: str) -> None:
    projects = sysmlv2_api_helpers.get_projects(server_url)
    print("Available Projects:")
    print("-" * 80)
    for project in projects:
        print(f"ID:   {project.get('@id')}")
        print(f"Name: {project.get('name')}")
        print("-" * 80)
    print("\nTo export a project, run:")
    print("  sysmlv2-export-text <username> <password> <projectId>")


def export_project(server_url: str, project_id: str, element_id: str = None) -> str:
    project = sysmlv2_api_helpers.get_project(server_url, project_id)
    project_name = project.get('name') or 'unknown'

    commits = sysmlv2_api_helpers.get_commits(server_url, project_id)
    if not commits:
        raise ValueError("No commits found in project")
    session = ExplorerSession(server_url, project_id, commits[-1]['@id'])

    print("Exporting SysML v2 text...")
    content = export_project_text(session, project_name, element_id)

    print("\n" + "=" * 80)
    print(f"PREVIEW (first {PREVIEW_CHARS} chars):")
    print("=" * 80)
    print(content[:PREVIEW_CHARS])
    if len(content) > PREVIEW_CHARS:
        print(f"\n... [truncated, {len(content)} total chars]")
    print("=" * 80)

    path = save_export(content, project_name, OUTPUT_DIR)
    print(f"\nExport saved to: {path}")
    return str(path)


def main(argv=None) -> int:
    args = build_parser().parse_args(sys.argv[1:] if argv is None else argv)
    setup_diagnostics(log_file="export_sysml_text.log")

    try:
        positional = [args.username, args.password] if args.username and args.password else None
        credentials = get_credentials(positional)
    except CredentialsError as e:
        print(f"Error: {e}")
        return 1

    sysmlv2_api_helpers.configure_session(credentials.username, credentials.password, credentials.verify_ssl)
    try:
        if not args.project_id:
            print("Fetching available projects...\n")
            list_projects(credentials.base_url)
        else:
            export_project(credentials.base_url, args.project_id, args.element_id)
    except Exception as e:
        logger.exception("Export failed")
        report = write_error_report(e, "export_error")
        print(f"Error: {e} (details in {report})")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())

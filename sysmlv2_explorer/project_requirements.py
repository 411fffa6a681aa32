#    Lists the requirements of a project's latest commit.
#
#    Usage: sysmlv2-requirements [username password [projectId]]
#    Without projectId the projects are listed for selection on the console.
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
from typing import Dict, List, Optional, Any

from . import sysmlv2_api_helpers
from .credentials import CredentialsError, get_credentials
from .diagnostics import setup_diagnostics, write_error_report
from .model_statistics import format_type_summary, requirements_from
from .sysml_types import element_name

logger = logging.getLogger(__name__)


def format_requirements(requirements: List[Dict[str, Any]]) -> str:
    if not requirements:
        return "No requirements found in this project."
    lines = []
    for req in requirements:
        lines.append("-" * 80)
        lines.append(f"Type: {req.get('@type')}")
        lines.append(f"ID: {req.get('@id')}")
        lines.append(f"Name: {element_name(req) or 'Unnamed'}")
        lines.append(f"Qualified Name: {req.get('qualifiedName') or 'N/A'}")
        if req.get('documentation'):
            lines.append(f"Documentation: {req['documentation']}")
    return "\n".join(lines)


def select_project(projects: List[Dict[str, Any]]) -> Optional[str]:
    """Interactive selection; returns None when the user quits."""
    print(f"{'#':<4} | {'Name':<40} | Created")
    print("-" * 80)
    for index, project in enumerate(projects, start=1):
        name = (project.get('name') or 'Unnamed')[:40]
        created = (project.get('created') or 'Unknown')[:10]
        print(f"{index:<4} | {name:<40} | {created}")
    choice = input("\nEnter project number (or 'q' to quit): ").strip()
    if choice.lower() == 'q':
        return None
    index = int(choice) - 1
    if not 0 <= index < len(projects):
        raise ValueError(f"Invalid project number: {choice}")
    return projects[index]['@id']


def fetch_requirements(server_url: str, project_id: str) -> List[Dict[str, Any]]:
    commits = sysmlv2_api_helpers.get_commits(server_url, project_id)
    if not commits:
        raise ValueError("No commits found in project")
    elements = sysmlv2_api_helpers.get_all_elements(server_url, project_id, commits[-1]['@id'])
    print("\nELEMENTS SUMMARY")
    print(format_type_summary(elements))
    return requirements_from(elements)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="List the requirements of a SysML v2 project")
    parser.add_argument("username", nargs="?")
    parser.add_argument("password", nargs="?")
    parser.add_argument("project_id", nargs="?")
    args = parser.parse_args(sys.argv[1:] if argv is None else argv)
    setup_diagnostics(log_file="requirements.log")

    try:
        positional = [args.username, args.password] if args.username and args.password else None
        credentials = get_credentials(positional)
    except CredentialsError as e:
        print(f"Error: {e}")
        return 1

    sysmlv2_api_helpers.configure_session(credentials.username, credentials.password, credentials.verify_ssl)
    try:
        project_id = args.project_id
        if not project_id:
            project_id = select_project(sysmlv2_api_helpers.get_projects(credentials.base_url))
            if project_id is None:
                return 0
        requirements = fetch_requirements(credentials.base_url, project_id)
        print("\nREQUIREMENTS")
        print(format_requirements(requirements))
    except Exception as e:
        logger.exception("Requirements listing failed")
        report = write_error_report(e, "requirements_error")
        print(f"Error: {e} (details in {report})")
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())

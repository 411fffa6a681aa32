#    Credential loading for the SysML v2 explorer and scripts.
#
#    Sources, in order of precedence:
#      1. Command-line arguments: username password
#      2. Environment variables: SYSMLV2_USERNAME, SYSMLV2_PASSWORD
#      3. credentials.properties file (key=value, gitignored)
#      4. Interactive console prompt (password masked)
#
#    SYSMLV2_BASE_URL and SYSMLV2_VERIFY_SSL are read from the environment,
#    then from the properties file.
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

import configparser
import getpass
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

CREDENTIALS_FILE = "credentials.properties"
ENV_USERNAME = "SYSMLV2_USERNAME"
ENV_PASSWORD = "SYSMLV2_PASSWORD"
ENV_BASE_URL = "SYSMLV2_BASE_URL"
ENV_VERIFY_SSL = "SYSMLV2_VERIFY_SSL"
DEFAULT_BASE_URL = "http://localhost:9000"


class CredentialsError(Exception):
    pass


class Credentials:

    def __init__(self, username: str, password: str, base_url: str = DEFAULT_BASE_URL,
                 verify_ssl: bool = True, source: str = ""):
        self.username = username
        self.password = password
        self.base_url = base_url.rstrip('/')
        self.verify_ssl = verify_ssl
        self.source = source

    def __repr__(self):
        return f"Credentials(username={self.username!r}, password={mask_password(self.password)!r}, base_url={self.base_url!r})"


def read_properties(path: Path) -> Dict[str, str]:
    """Reads a Java-style ``key=value`` properties file. Keys keep their case."""
    parser = configparser.ConfigParser(interpolation=None, delimiters=('=', ':'))
    parser.optionxform = str
    parser.read_string("[properties]\n" + path.read_text(encoding="utf-8"))
    return dict(parser['properties'])


def _find_properties_file(properties_path: Optional[str]) -> Optional[Path]:
    candidates = [Path(properties_path)] if properties_path else [
        Path.cwd() / CREDENTIALS_FILE,
        Path(__file__).resolve().parent.parent / CREDENTIALS_FILE,
    ]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def _parse_bool(value: Optional[str], default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in ('0', 'false', 'no', 'off')


def get_credentials(args: Optional[List[str]] = None, properties_path: Optional[str] = None,
                    interactive: bool = True) -> Credentials:
    """
    Resolves credentials from the sources listed in the module header.

    Args:
        args (List[str], optional): Positional arguments; the first two are username and password.
        properties_path (str, optional): Explicit properties file. Defaults to
            ``credentials.properties`` in the working directory or the project root.
        interactive (bool, optional): Prompt on the console as last resort. Defaults to True.

    Returns:
        Credentials: The resolved credentials.

    Raises:
        CredentialsError: If no source provides both username and password.
    """
    username = password = None
    source = ""

    if args and len(args) >= 2:
        username, password = args[0], args[1]
        source = "command-line arguments"

    if not username or not password:
        env_user = os.environ.get(ENV_USERNAME)
        env_pass = os.environ.get(ENV_PASSWORD)
        if env_user and env_pass:
            username, password = env_user, env_pass
            source = "environment variables"

    props = {}
    props_file = _find_properties_file(properties_path)
    if props_file is not None:
        props = read_properties(props_file)

    if (not username or not password) and props:
        username = username or props.get(ENV_USERNAME)
        password = password or props.get(ENV_PASSWORD)
        if username and password:
            source = props_file.name

    if (not username or not password) and interactive:
        print("No credentials found. Please enter:")
        if not username:
            username = input("Username: ")
        if not password:
            password = getpass.getpass("Password: ")
        source = "interactive prompt"

    if not username or not password:
        raise CredentialsError("Could not obtain credentials")

    base_url = os.environ.get(ENV_BASE_URL) or props.get(ENV_BASE_URL) or DEFAULT_BASE_URL
    verify_ssl = _parse_bool(os.environ.get(ENV_VERIFY_SSL, props.get(ENV_VERIFY_SSL)))
    logger.info("Using credentials from %s", source)
    return Credentials(username, password, base_url, verify_ssl, source)


def mask_password(password: Optional[str]) -> str:
    """Shows only the first and last character of a password."""
    if password is None or len(password) <= 2:
        return "***"
    return password[0] + "*" * (len(password) - 2) + password[-1]

#    Diagnostic logging for the SysML v2 explorer and scripts.
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
import traceback
from datetime import datetime
from pathlib import Path

DIAGNOSTIC_DIR = "diagnostics"
DIAGNOSTIC_FILE = "explorer_diagnostic.log"
LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def setup_diagnostics(log_dir: str = DIAGNOSTIC_DIR, log_file: str = DIAGNOSTIC_FILE,
                      verbose: bool = False) -> Path:
    """
    Logs to the console and appends to ``<log_dir>/<log_file>`` for the process lifetime.

    Returns:
        Path: The diagnostic log file.
    """
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / log_file

    file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(), file_handler],
        force=True,
    )
    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger(__name__).info("Diagnostics initialized: %s", log_path.resolve())
    return log_path


def write_error_report(error: BaseException, prefix: str = "error", log_dir: str = DIAGNOSTIC_DIR) -> Path:
    """Writes the error and its traceback to a timestamped file for batch scripts."""
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{prefix}_{datetime.now():%Y%m%d_%H%M%S}.log"
    details = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    path.write_text(f"Error: {error}\n\nStack trace:\n{details}", encoding="utf-8")
    return path


def truncate_message(message: str, limit: int = 200) -> str:
    """Shortens a message for display to the user; the log keeps the full text."""
    message = str(message)
    if len(message) <= limit:
        return message
    return message[:limit] + "..."

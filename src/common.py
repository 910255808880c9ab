"""Common utilities for cluster automation."""

import json
import logging
import os
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Optional

import yaml

logger = logging.getLogger(__name__)


def run_command(
    cmd: list[str],
    cwd: Optional[Path] = None,
    timeout: int = 600,
    capture: bool = True,
    env: Optional[dict] = None
) -> tuple[int, str, str]:
    """Run a command and return (returncode, stdout, stderr).

    With capture=False the command writes straight to the terminal and
    stdout/stderr come back empty.
    """
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            cwd=cwd,
            capture_output=capture,
            text=True,
            timeout=timeout,
            env=env,
            check=False  # We handle return codes explicitly
        )
        return result.returncode, result.stdout or '', result.stderr or ''
    except subprocess.TimeoutExpired:
        return -1, '', f'Command timed out after {timeout}s'
    except OSError as e:
        return -1, '', str(e)


def write_temp_file(prefix: str, suffix: str, data: dict) -> Path:
    """Write data to a unique temporary file and return its path.

    JSON for .json suffixes, YAML otherwise. Caller is responsible for cleanup.
    """
    fd, path = tempfile.mkstemp(prefix=prefix, suffix=suffix)
    with os.fdopen(fd, 'w', encoding='utf-8') as f:
        if suffix.endswith('.json'):
            json.dump(data, f, indent=2)
        else:
            yaml.safe_dump(data, f, default_flow_style=False)
    return Path(path)


def remove_file(path: Optional[Path]) -> None:
    """Remove a temporary file if it still exists."""
    if path and path.exists():
        path.unlink()
        logger.debug(f"Cleaned up temp file: {path}")


def ask_for_confirmation(question: str, input_fn: Callable[[str], str] = input) -> bool:
    """Ask a yes/no question on the terminal. Anything but 'y'/'yes' declines."""
    response = input_fn(f"{question} [y/N] ").strip().lower()
    return response in ('y', 'yes')

"""Pre-flight readiness checks for cluster apply.

Validates local prerequisites before touching any infrastructure:
- provisioner and helm binaries on PATH
- provisioner working directory present
- chart repositories reachable for components that reference one
"""

import logging
import shutil
from pathlib import Path

import requests

from config import ClusterConfig

logger = logging.getLogger(__name__)


def validate_binary(binary: str) -> tuple[bool, str]:
    """Check that an executable is on PATH.

    Returns:
        (success, message) tuple
    """
    path = shutil.which(binary)
    if path is None:
        return False, f"'{binary}' not found on PATH"
    return True, f"{binary} found at {path}"


def validate_terraform_dir(path: Path) -> tuple[bool, str]:
    if not path.is_dir():
        return False, f"Terraform directory not found: {path}"
    if not any(path.glob('*.tf')):
        return False, f"No .tf files in {path}"
    return True, f"Terraform directory {path} ok"


def validate_chart_repo(url: str, timeout: float = 10.0) -> tuple[bool, str]:
    """Check a chart repository serves an index.

    Args:
        url: Repository URL (e.g., https://charts.example.com)
        timeout: Request timeout in seconds

    Returns:
        (success, message) tuple
    """
    index_url = f"{url.rstrip('/')}/index.yaml"
    try:
        resp = requests.get(index_url, timeout=timeout)
    except requests.exceptions.ConnectionError as e:
        return False, f"Cannot connect to {url}: {e}"
    except requests.exceptions.Timeout:
        return False, f"Timeout connecting to {url}"
    except requests.exceptions.RequestException as e:
        return False, f"Error checking chart repository {url}: {e}"

    if resp.status_code == 200:
        return True, f"Chart repository {url} reachable"
    return False, f"Chart repository {url} returned {resp.status_code}"


def run_preflight(config: ClusterConfig) -> list[str]:
    """Run all checks for a cluster apply.

    Returns:
        List of failure messages, empty when everything is ready
    """
    checks = [
        validate_binary(config.terraform_binary),
        validate_binary(config.helm_binary),
        validate_terraform_dir(config.terraform_dir or config.asset_dir / 'terraform'),
    ]
    for repo in sorted({c.repo for c in config.components if c.repo}):
        checks.append(validate_chart_repo(repo))

    failures = []
    for ok, message in checks:
        if ok:
            logger.debug(message)
        else:
            logger.error(f"Preflight: {message}")
            failures.append(message)
    return failures

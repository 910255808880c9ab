"""Helm CLI adapter: release history, install and upgrade."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from common import remove_file, run_command, write_temp_file

logger = logging.getLogger(__name__)


class HelmError(Exception):
    """Helm command failed."""


@dataclass
class HelmClient:
    """Run helm against one cluster."""
    kubeconfig: Path
    binary: str = 'helm'
    timeout: int = 300

    def _run(self, args: list[str], timeout: Optional[int] = None) -> str:
        timeout = timeout or self.timeout
        cmd = [self.binary, *args, '--kubeconfig', str(self.kubeconfig)]
        # Leave headroom for helm's own --timeout to fire first
        rc, out, err = run_command(cmd, timeout=timeout + 60)
        if rc != 0:
            raise HelmError((err or out).strip() or f"helm exited {rc}")
        return out

    def release_exists(self, name: str, namespace: str) -> bool:
        """Check release history. Only 'release: not found' means absent."""
        try:
            self._run(['history', name, '--max', '1', '-o', 'json', '-n', namespace])
        except HelmError as e:
            if 'release: not found' in str(e):
                return False
            raise HelmError(f"checking release history: {e}") from e
        return True

    def _release_args(self, namespace: str, wait: bool, version: Optional[str],
                      repo: Optional[str], values_file: Optional[Path],
                      timeout: int) -> list[str]:
        args = ['-n', namespace]
        if repo:
            args += ['--repo', repo]
        if version:
            args += ['--version', version]
        if values_file:
            args += ['-f', str(values_file)]
        if wait:
            args += ['--wait', '--timeout', f'{timeout}s']
        return args

    def _release(self, verb: list[str], name: str, namespace: str, chart: str, *,
                 wait: bool = False, version: Optional[str] = None, repo: Optional[str] = None,
                 values: Optional[dict] = None, timeout: Optional[int] = None) -> None:
        timeout = timeout or self.timeout
        values_file = None
        try:
            if values:
                values_file = write_temp_file(f'values-{name}-', '.yaml', values)
            args = [*verb, name, chart]
            args += self._release_args(namespace, wait, version, repo, values_file, timeout)
            self._run(args, timeout=timeout)
        finally:
            remove_file(values_file)

    def install(self, name: str, namespace: str, chart: str, **kwargs) -> None:
        """Install a new release into namespace."""
        logger.info(f"Installing release {name} into {namespace} from {chart}")
        self._release(['install'], name, namespace, chart, **kwargs)

    def upgrade(self, name: str, namespace: str, chart: str, **kwargs) -> None:
        """Upgrade an existing release, replacing resources that can't be patched."""
        logger.info(f"Upgrading release {name} in {namespace} from {chart}")
        self._release(['upgrade', '--force'], name, namespace, chart, **kwargs)

"""OpenTofu/Terraform executor for cluster infrastructure."""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from common import remove_file, run_command, write_temp_file

logger = logging.getLogger(__name__)


class ProvisionerError(Exception):
    """Provisioning engine command failed."""


@dataclass
class TerraformExecutor:
    """Run tofu (or terraform) in a fixed working directory.

    State isolation: state lives in state_dir, and TF_DATA_DIR points at a
    `data/` subdirectory of it. TF_DATA_DIR must NOT contain
    terraform.tfstate, otherwise OpenTofu's legacy code path reads it and
    rejects version 4 states.
    """
    working_dir: Path
    state_dir: Path
    binary: str = 'tofu'
    variables: dict = field(default_factory=dict)
    verbose: bool = False
    timeout_init: int = 300
    timeout_plan: int = 600
    timeout_apply: int = 3600

    _initialized: bool = field(default=False, init=False, repr=False)

    @property
    def state_file(self) -> Path:
        return self.state_dir / 'terraform.tfstate'

    def _env(self) -> dict:
        data_dir = self.state_dir / 'data'
        data_dir.mkdir(parents=True, exist_ok=True)
        return {**os.environ, 'TF_DATA_DIR': str(data_dir), 'TF_IN_AUTOMATION': '1'}

    def _execute(self, args: list[str], timeout: int, capture: bool = True,
                 with_vars: bool = False) -> str:
        if not self.working_dir.exists():
            raise ProvisionerError(f"Terraform directory not found: {self.working_dir}")

        tfvars_path = None
        cmd = [self.binary, *args]
        try:
            if with_vars:
                tfvars_path = write_temp_file('tfvars-', '.tfvars.json', self.variables)
                cmd.append(f'-var-file={tfvars_path}')
            rc, out, err = run_command(cmd, cwd=self.working_dir, timeout=timeout,
                                       capture=capture, env=self._env())
        finally:
            remove_file(tfvars_path)

        if rc != 0:
            detail = err.strip() or f"exit code {rc}"
            raise ProvisionerError(f"{self.binary} {args[0]} failed: {detail}")
        return out

    def init(self) -> None:
        """Run init once per executor."""
        if self._initialized:
            return
        logger.info(f"Running {self.binary} init...")
        self._execute(['init', '-input=false'], timeout=self.timeout_init, capture=not self.verbose)
        self._initialized = True

    def cluster_exists(self) -> bool:
        """True if the state file exists and tracks at least one resource."""
        if not self.state_file.exists():
            return False
        self.init()
        out = self._execute(['state', 'list', f'-state={self.state_file}'], timeout=self.timeout_init)
        return bool(out.strip())

    def plan(self) -> None:
        """Show the diff between state and configuration on the terminal."""
        self.init()
        logger.info(f"Running {self.binary} plan (state: {self.state_file})...")
        self._execute(
            ['plan', '-input=false', f'-state={self.state_file}'],
            timeout=self.timeout_plan, capture=False, with_vars=True,
        )

    def apply(self) -> None:
        """Apply the configuration. Output is shown only in verbose mode."""
        self.init()
        logger.info(f"Running {self.binary} apply (state: {self.state_file})...")
        self._execute(
            ['apply', '-input=false', '-auto-approve', f'-state={self.state_file}'],
            timeout=self.timeout_apply, capture=not self.verbose, with_vars=True,
        )

    def outputs(self) -> dict[str, Any]:
        """Return all outputs as {name: value}."""
        self.init()
        out = self._execute(['output', '-json', f'-state={self.state_file}'], timeout=self.timeout_init)
        try:
            raw = json.loads(out or '{}')
        except json.JSONDecodeError as e:
            raise ProvisionerError(f"invalid output JSON: {e}") from e
        return {key: item.get('value') for key, item in raw.items()}

    def output(self, key: str, default: Optional[Any] = None, required: bool = True) -> Any:
        """Return a single named output.

        Raises:
            ProvisionerError: If the output is missing and required
        """
        values = self.outputs()
        if key not in values:
            if required:
                raise ProvisionerError(f"output {key!r} not found")
            return default
        return values[key]

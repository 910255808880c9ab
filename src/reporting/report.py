"""Apply run reports (JSON and Markdown)."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional


@dataclass
class PhaseResult:
    """Result of an apply phase."""
    name: str
    description: str
    status: str  # 'passed', 'failed', 'skipped'
    message: str = ''
    duration: float = 0.0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


@dataclass
class ApplyReport:
    """Collects phase results and writes run reports.

    Outcome is one of 'applied', 'aborted' or 'failed'.
    """
    cluster: str
    report_dir: Optional[Path] = None
    command: str = 'cluster-apply'
    phases: list[PhaseResult] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    outcome: str = ''

    _phase_start: Optional[datetime] = field(default=None, repr=False)

    @property
    def success(self) -> bool:
        return self.outcome in ('applied', 'aborted')

    @property
    def duration(self) -> float:
        if self.finished_at and self.started_at:
            return (self.finished_at - self.started_at).total_seconds()
        return 0.0

    def start(self):
        """Mark run start."""
        self.started_at = datetime.now()

    def start_phase(self, _name: str):
        """Mark phase start."""
        self._phase_start = datetime.now()

    def pass_phase(self, name: str, description: str, message: str = ''):
        self._record_phase(name, description, 'passed', message)

    def fail_phase(self, name: str, description: str, message: str = ''):
        self._record_phase(name, description, 'failed', message)

    def skip_phase(self, name: str, description: str, reason: str = ''):
        self.phases.append(PhaseResult(
            name=name,
            description=description,
            status='skipped',
            message=reason,
        ))

    def _record_phase(self, name: str, description: str, status: str, message: str):
        now = datetime.now()
        duration = (now - self._phase_start).total_seconds() if self._phase_start else 0.0
        self.phases.append(PhaseResult(
            name=name,
            description=description,
            status=status,
            message=message,
            duration=duration,
            started_at=self._phase_start,
            finished_at=now
        ))
        self._phase_start = None

    def phase_status(self, name: str) -> Optional[str]:
        for p in self.phases:
            if p.name == name:
                return p.status
        return None

    def finish(self, outcome: str):
        """Finalize report and write files when a report_dir is set."""
        self.finished_at = datetime.now()
        self.outcome = outcome
        if self.report_dir is None:
            return
        self.report_dir.mkdir(parents=True, exist_ok=True)
        self._write_json()
        self._write_markdown()

    def _write_json(self):
        data = {
            'command': self.command,
            'cluster': self.cluster,
            'outcome': self.outcome,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'finished_at': self.finished_at.isoformat() if self.finished_at else None,
            'duration': self.duration,
            'phases': [
                {
                    'name': p.name,
                    'description': p.description,
                    'status': p.status,
                    'message': p.message,
                    'duration': p.duration
                }
                for p in self.phases
            ]
        }
        with open(self._report_filename('json'), 'w', encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def _write_markdown(self):
        lines = [
            f"# {self.command}",
            "",
            f"**Cluster**: {self.cluster}",
            f"**Outcome**: {self.outcome.upper()}",
            f"**Date**: {self.started_at.strftime('%Y-%m-%d %H:%M:%S') if self.started_at else 'N/A'}",
            f"**Duration**: {self.duration:.1f}s",
            "",
            "## Phases",
            "",
            "| Phase | Status | Duration | Message |",
            "|-------|--------|----------|---------|",
        ]

        for p in self.phases:
            status_emoji = {'passed': '✅', 'failed': '❌', 'skipped': '⏭️'}.get(p.status, '❓')
            lines.append(f"| {p.name} | {status_emoji} {p.status} | {p.duration:.1f}s | {p.message} |")

        lines.extend(["", "---", f"Generated: {datetime.now().isoformat()}"])

        with open(self._report_filename('md'), 'w', encoding="utf-8") as f:
            f.write('\n'.join(lines))

    def _report_filename(self, ext: str) -> Path:
        assert self.report_dir is not None
        timestamp = self.started_at.strftime('%Y%m%d-%H%M%S') if self.started_at else 'unknown'
        return self.report_dir / f"{timestamp}.{self.cluster}.{self.command}.{self.outcome}.{ext}"

    def to_dict(self) -> dict:
        """Return report as dictionary for JSON output."""
        result = {
            'command': self.command,
            'cluster': self.cluster,
            'outcome': self.outcome,
            'success': self.success,
            'duration_seconds': round(self.duration, 1),
            'phases': [
                {
                    'name': p.name,
                    'status': p.status,
                    'duration': round(p.duration, 1),
                }
                for p in self.phases
            ]
        }

        # Include error message on failure
        if not self.success:
            for p in self.phases:
                if p.status == 'failed' and p.message:
                    result['error'] = p.message
                    break

        return result

"""Apply run reporting."""

from reporting.report import ApplyReport, PhaseResult

__all__ = ['ApplyReport', 'PhaseResult']

"""Run orchestration — schedule → source → universe → lifecycle.

Components:
- UniverseRunner: replays evaluation times and composite events
- RunReport: evaluations and diagnostics of one run
"""

from basalt.pipeline.runner import RunReport, SelectionDiagnostic, UniverseRunner

__all__ = ["RunReport", "SelectionDiagnostic", "UniverseRunner"]

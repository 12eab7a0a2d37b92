"""
Instrumentation Trace Logger.

Records the step-by-step execution of the rewriter. It captures:
1. Lifecycle Phases (Validation, Rewriting, Import Injection).
2. Exit Instrumentation (``return x`` at line N -> bind/emit/remove/return).
3. Decisions that left a node untouched (convention pass-through calls).

The output is a structured list of Event Log dictionaries suitable for JSON serialization.
"""

import time
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field, asdict


class TraceEventType(str, Enum):
  PHASE_START = "phase_start"
  PHASE_END = "phase_end"
  EXIT_INSTRUMENTED = "exit_instrumented"
  FUNCTION_INSTRUMENTED = "function_instrumented"
  ANALYSIS_WARNING = "analysis_warning"
  INSPECTION = "inspection"


@dataclass
class TraceEvent:
  id: str
  type: TraceEventType
  timestamp: float
  description: str
  parent_id: Optional[str] = None
  metadata: Dict[str, Any] = field(default_factory=dict)


class TraceLogger:
  """
  Records instrumentation events.
  A fresh instance is created by the engine for every run and handed to the rewriters.
  """

  def __init__(self):
    self._events: List[TraceEvent] = []
    self._active_phases: List[str] = []  # Stack of phase IDs

  def start_phase(self, name: str, description: str = "") -> str:
    """Starts a nested phase (e.g., 'Rewriting'). Returns Phase ID."""
    phase_id = str(uuid.uuid4())
    parent = self._active_phases[-1] if self._active_phases else None

    event = TraceEvent(
      id=phase_id,
      type=TraceEventType.PHASE_START,
      timestamp=time.time(),
      description=name,
      parent_id=parent,
      metadata={"detail": description},
    )
    self._events.append(event)
    self._active_phases.append(phase_id)
    return phase_id

  def end_phase(self):
    """Ends the current active phase."""
    if not self._active_phases:
      return

    phase_id = self._active_phases.pop()
    event = TraceEvent(
      id=str(uuid.uuid4()),
      type=TraceEventType.PHASE_END,
      timestamp=time.time(),
      description="End Phase",
      parent_id=phase_id,
    )
    self._events.append(event)

  def end_all_phases(self):
    """Ends every phase still open, innermost first."""
    while self._active_phases:
      self.end_phase()

  def log_exit(self, fn_name: str, kind: str, before: str, after: str):
    """Logs the instrumentation of one exit point."""
    self._log_simple(
      TraceEventType.EXIT_INSTRUMENTED,
      f"Instrumented {kind} exit in {fn_name}",
      {"function": fn_name, "kind": kind, "before": before, "after": after},
    )

  def log_function(self, fn_name: str, exits: List[str], saw_explicit_exit: bool):
    """Logs the summary of one instrumented function."""
    self._log_simple(
      TraceEventType.FUNCTION_INSTRUMENTED,
      f"Instrumented {fn_name}",
      {"function": fn_name, "exits": exits, "synthetic_tail": not saw_explicit_exit},
    )

  def log_warning(self, message: str):
    self._log_simple(TraceEventType.ANALYSIS_WARNING, message, {"level": "warning"})

  def log_inspection(self, node_str: str, outcome: str, detail: str = ""):
    """Logs a decision point where no change occurred."""
    self._log_simple(TraceEventType.INSPECTION, f"Inspecting '{node_str}'", {"outcome": outcome, "detail": detail})

  def _log_simple(self, evt_type: TraceEventType, desc: str, meta: Dict[str, Any]):
    parent = self._active_phases[-1] if self._active_phases else None
    self._events.append(
      TraceEvent(
        id=str(uuid.uuid4()), type=evt_type, timestamp=time.time(), description=desc, parent_id=parent, metadata=meta
      )
    )

  def export(self) -> List[Dict[str, Any]]:
    """Returns list of dicts for JSON serialization."""
    return [asdict(e) for e in self._events]

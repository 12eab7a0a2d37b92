"""
Tests for the Tracing System.
"""

import json

import pytest

from fnlog.config import RuntimeConfig
from fnlog.core.engine import InstrumentEngine
from fnlog.core.tracer import TraceEventType, TraceLogger


def test_phase_nesting():
  logger = TraceLogger()

  p1 = logger.start_phase("Parent")
  logger.start_phase("Child")
  logger.end_phase()  # End Child
  logger.end_phase()  # End Parent

  events = logger.export()

  # 4 events: Start P, Start C, End C, End P
  assert len(events) == 4
  assert events[0]["type"] == TraceEventType.PHASE_START
  assert events[1]["parent_id"] == p1
  assert events[2]["type"] == TraceEventType.PHASE_END


def test_end_phase_without_start_is_noop():
  logger = TraceLogger()
  logger.end_phase()
  assert logger.export() == []


def test_exit_event_metadata():
  logger = TraceLogger()
  phase = logger.start_phase("Rewriting")
  logger.log_exit("f", "return", "return x", "_fnlog_res = x")

  event = logger.export()[1]
  assert event["type"] == TraceEventType.EXIT_INSTRUMENTED
  assert event["parent_id"] == phase
  assert event["metadata"] == {"function": "f", "kind": "return", "before": "return x", "after": "_fnlog_res = x"}


def test_function_summary_reports_synthetic_tail():
  logger = TraceLogger()
  logger.log_function("f", ["failure"], saw_explicit_exit=False)

  meta = logger.export()[0]["metadata"]
  assert meta["exits"] == ["failure"]
  assert meta["synthetic_tail"] is True


def test_engine_trace_is_json_serializable():
  code = "@log_function\ndef f(x):\n    if x:\n        raise ValueError()\n    return x\n"
  result = InstrumentEngine(config=RuntimeConfig()).run(code)

  payload = json.loads(json.dumps(result.trace_events))
  types = [e["type"] for e in payload]

  assert types[0] == TraceEventType.PHASE_START
  assert types.count(TraceEventType.PHASE_START) == types.count(TraceEventType.PHASE_END)
  summary = [e for e in payload if e["type"] == TraceEventType.FUNCTION_INSTRUMENTED][0]
  assert summary["metadata"]["exits"] == ["failure", "return"]
  instrumented = [e["metadata"]["kind"] for e in payload if e["type"] == TraceEventType.EXIT_INSTRUMENTED]
  assert instrumented == ["return"]


@pytest.mark.parametrize(
  "code",
  [
    "def broken(:\n",
    "@log_function(1)\ndef f():\n    pass\n",
    "@log_function\ndef gen():\n    yield 1\n",
  ],
)
def test_failed_run_closes_every_phase(code):
  result = InstrumentEngine(config=RuntimeConfig()).run(code)

  assert not result.success
  types = [e["type"] for e in result.trace_events]
  assert types.count(TraceEventType.PHASE_START) == types.count(TraceEventType.PHASE_END)
  assert types[-1] == TraceEventType.PHASE_END


def test_end_all_phases():
  logger = TraceLogger()
  logger.start_phase("Outer")
  logger.start_phase("Inner")
  logger.end_all_phases()

  events = logger.export()
  assert [e["type"] for e in events] == ["phase_start", "phase_start", "phase_end", "phase_end"]
  assert events[2]["parent_id"] == events[1]["id"]

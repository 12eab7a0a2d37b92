"""
Pytest Configuration and Fixtures.

Includes:
- Syspath patching for local imports.
- A recording sink and an isolated diagnostic context per test.
- A loader that instruments a source string and executes it with those
  handles bound, so tests observe the generated code's real behaviour.
"""

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest

# Add src to path so we can import 'fnlog' without installing it
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from fnlog.config import RuntimeConfig  # noqa: E402
from fnlog.core.engine import InstrumentEngine  # noqa: E402
from fnlog.runtime import DiagnosticContext, LogRecord  # noqa: E402


@dataclass
class Emission:
  severity: str
  target: str
  record: LogRecord
  context: Dict[str, str]


class RecordingSink:
  """
  Sink double that keeps every emission, with the context visible at that moment.
  """

  def __init__(self, context: Optional[DiagnosticContext] = None):
    self.context = context
    self.emissions: List[Emission] = []

  def emit(self, severity: str, target: str, record: LogRecord) -> None:
    snapshot = self.context.snapshot() if self.context is not None else {}
    self.emissions.append(Emission(severity, target, record, snapshot))

  @property
  def records(self) -> List[LogRecord]:
    return [e.record for e in self.emissions]

  def returns(self) -> List[str]:
    return [r.fn_return for r in self.records]

  def clear(self) -> None:
    self.emissions.clear()


@pytest.fixture
def context() -> DiagnosticContext:
  """A diagnostic context isolated from the process-wide default."""
  ctx = DiagnosticContext(name="fnlog_test_mdc")
  ctx.clear()
  return ctx


@pytest.fixture
def sink(context) -> RecordingSink:
  return RecordingSink(context)


@pytest.fixture
def instrument_source() -> Callable[..., str]:
  """Instruments a source string without the runtime import; fails the test on errors."""

  def _run(code: str, **config: Any) -> str:
    config.setdefault("inject_runtime_import", False)
    result = InstrumentEngine(config=RuntimeConfig(**config)).run(code)
    assert result.success, result.errors
    return result.code

  return _run


@pytest.fixture
def load(instrument_source, sink, context) -> Callable[..., Dict[str, Any]]:
  """
  Instruments and executes a module source string.

  Returns the resulting namespace; the test's ``sink`` and ``context`` are
  bound as the runtime handles.
  """

  def _load(code: str, extra: Optional[Dict[str, Any]] = None, **config: Any) -> Dict[str, Any]:
    rewritten = instrument_source(code, **config)
    namespace: Dict[str, Any] = {
      "__name__": "fnlog_test_module",
      "_fnlog_sink": sink,
      "_fnlog_context": context,
      "_fnlog_record": LogRecord,
    }
    namespace.update(extra or {})
    exec(compile(rewritten, "<instrumented>", "exec"), namespace)
    return namespace

  return _load

"""
Diagnostic Context Store.

A keyed store of tags attached to log records for correlation (a "mapped
diagnostic context"). Instrumented functions push their name under ``fn_name``
on entry and pop it on every exit.

Values stack per key: ``insert`` pushes and ``remove`` pops, so when an
instrumented function calls another, the caller's tag is visible again once
the callee returns. State lives in a ``contextvars.ContextVar`` holding an
immutable mapping, which makes it independent per thread and per asyncio task.
"""

import logging
from contextvars import ContextVar
from typing import Dict, Optional, Tuple

_Stacks = Dict[str, Tuple[str, ...]]


class DiagnosticContext:
  """
  Task-local keyed store with stack semantics per key.

  Attributes:
      name (str): Identifier of the underlying context variable.
  """

  def __init__(self, name: str = "fnlog_mdc"):
    self.name = name
    self._var: ContextVar[_Stacks] = ContextVar(name, default={})

  def insert(self, key: str, value: str) -> None:
    """
    Pushes ``value`` for ``key``.

    Args:
        key: Tag name.
        value: Tag value.
    """
    stacks = self._var.get()
    updated = dict(stacks)
    updated[key] = stacks.get(key, ()) + (value,)
    self._var.set(updated)

  def remove(self, key: str) -> None:
    """
    Pops the innermost value for ``key``. Removing an absent key is a no-op.

    Args:
        key: Tag name.
    """
    stacks = self._var.get()
    if key not in stacks:
      return
    updated = dict(stacks)
    remaining = stacks[key][:-1]
    if remaining:
      updated[key] = remaining
    else:
      del updated[key]
    self._var.set(updated)

  def get(self, key: str) -> Optional[str]:
    """Returns the innermost value for ``key``, if any."""
    stack = self._var.get().get(key)
    return stack[-1] if stack else None

  def snapshot(self) -> Dict[str, str]:
    """Returns the innermost value of every key."""
    return {k: v[-1] for k, v in self._var.get().items() if v}

  def depth(self, key: str) -> int:
    return len(self._var.get().get(key, ()))

  def clear(self) -> None:
    self._var.set({})

  def __contains__(self, key: str) -> bool:
    return bool(self._var.get().get(key))


class DiagnosticContextFilter(logging.Filter):
  """
  Attaches the current diagnostic context to every record passing through.

  The snapshot is stored as ``record.mdc``; each tag is also set as a record
  attribute (e.g. ``record.fn_name``) unless the record already carries one,
  so formatters can use ``%(fn_name)s``.
  """

  def __init__(self, context: DiagnosticContext, name: str = ""):
    super().__init__(name)
    self.context = context

  def filter(self, record: logging.LogRecord) -> bool:
    snapshot = self.context.snapshot()
    if not hasattr(record, "mdc"):
      record.mdc = snapshot
    for key, value in snapshot.items():
      if not hasattr(record, key):
        setattr(record, key, value)
    return True

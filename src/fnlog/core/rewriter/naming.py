"""
Reserved identifiers used by generated code.

Every name the rewriter introduces into a function body starts with
``RESERVED_PREFIX`` so it cannot collide with user code. Handles are
module-level names; slots are locals of the instrumented function.
"""

RESERVED_PREFIX = "_fnlog_"

# Locals
ARGS_SLOT = "_fnlog_args"
RESULT_SLOT = "_fnlog_res"

# Module-level handles bound by the runtime import (or injected by callers)
SINK_HANDLE = "_fnlog_sink"
CONTEXT_HANDLE = "_fnlog_context"
RECORD_HANDLE = "_fnlog_record"

# Result sentinels
NOTHING = "nothing"
IGNORED = "ignored"

# Wrapped-trait convention
WRAPPED_TRAIT_MARKER = "async_trait"
CONVENTION_RESULT_NAME = "__ret"
PIN_CALL = ("Box", "pin")


def is_reserved(name: str) -> bool:
  """Checks whether an identifier lives in the rewriter's namespace."""
  return name.startswith(RESERVED_PREFIX)


def string_literal(value: str) -> str:
  """
  Renders ``value`` as a double-quoted Python string literal.

  Args:
      value: Any text (function names, context keys, level names).

  Returns:
      str: Source text of the literal.
  """
  escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
  return f'"{escaped}"'

"""
Logging Directive Parser.

Reads the arguments of the marker decorator (``@log_function`` by default) and
turns them into ``FunctionOptions``. Accepted forms::

    @log_function
    @log_function()
    @log_function("ignore-return")

Anything else fails the build with a ``DirectiveError`` carrying the offending
node, so the caller can anchor the diagnostic at its source position.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import libcst as cst

from fnlog.core.errors import DirectiveError
from fnlog.enums import Directive

MSG_ARITY = "only one argument is allowed"
MSG_LITERAL = "expected a string literal for the logging directive"


@dataclass(frozen=True)
class FunctionOptions:
  """
  Per-function configuration derived from the directive.

  Attributes:
      ignore_return: Replace the serialized result with the "ignored" sentinel.
      unknown_directive: The literal value when it was accepted without effect.
  """

  ignore_return: bool = False
  unknown_directive: Optional[str] = None


def decorator_name(expr: cst.BaseExpression) -> str:
  """
  Resolves the last dotted segment of a decorator expression.

  ``@log_function``, ``@fnlog.log_function`` and ``@log_function("x")``
  all resolve to ``log_function``.

  Args:
      expr: The ``Decorator.decorator`` expression.

  Returns:
      str: The identifier, or an empty string for unsupported shapes.
  """
  if isinstance(expr, cst.Call):
    expr = expr.func
  if isinstance(expr, cst.Name):
    return expr.value
  if isinstance(expr, cst.Attribute):
    return expr.attr.value
  return ""


def find_marker(decorators: Sequence[cst.Decorator], name: str) -> Optional[cst.Decorator]:
  """
  Returns the first decorator whose name matches ``name``.

  Args:
      decorators: Decorators of a function or class.
      name: The marker identifier.

  Returns:
      Optional[cst.Decorator]: The matching decorator node.
  """
  for deco in decorators:
    if decorator_name(deco.decorator) == name:
      return deco
  return None


def parse_directives(decorator: cst.Decorator, strict_mode: bool = False) -> FunctionOptions:
  """
  Validates the marker's arguments and extracts the options.

  Args:
      decorator: The marker decorator node.
      strict_mode: Reject unrecognised literals instead of ignoring them.

  Returns:
      FunctionOptions: The parsed options.

  Raises:
      DirectiveError: On more than one argument, a non string-literal argument,
          or (strict mode) an unrecognised literal.
  """
  expr = decorator.decorator
  if not isinstance(expr, cst.Call):
    return FunctionOptions()

  args = list(expr.args)
  if len(args) > 1:
    raise DirectiveError(MSG_ARITY, node=args[1])

  if not args:
    return FunctionOptions()

  arg = args[0]
  value = _literal_value(arg)
  if value is None:
    raise DirectiveError(MSG_LITERAL, node=arg)

  if value == Directive.IGNORE_RETURN.value:
    return FunctionOptions(ignore_return=True)

  if strict_mode:
    raise DirectiveError(f"unknown logging directive '{value}'", node=arg)
  return FunctionOptions(unknown_directive=value)


def _literal_value(arg: cst.Arg) -> Optional[str]:
  """Plain (non-bytes, non-f) string literal passed positionally, else None."""
  if arg.keyword is not None or arg.star:
    return None
  if not isinstance(arg.value, cst.SimpleString):
    return None
  if "b" in arg.value.prefix.lower():
    return None
  return arg.value.evaluated_value

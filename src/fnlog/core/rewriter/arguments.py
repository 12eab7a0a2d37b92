"""
Argument Serializer.

Builds the entry-time argument snapshot: a list of ``"name: repr(value)"``
strings, one per named parameter in declaration order. The receiver of a
method (``self`` / ``cls``) is not part of the snapshot.
"""

from typing import Iterator, List

import libcst as cst

from fnlog.core.errors import UnsupportedSyntaxError
from fnlog.core.rewriter.naming import ARGS_SLOT, is_reserved


def iter_parameters(params: cst.Parameters) -> Iterator[cst.Param]:
  """
  Yields every named parameter in declaration order.

  Order: positional-only, regular, ``*args``, keyword-only, ``**kwargs``.
  A bare ``*`` separator carries no name and is skipped.

  Args:
      params: The function's parameter list.

  Yields:
      cst.Param: Each named parameter.
  """
  yield from params.posonly_params
  yield from params.params
  if isinstance(params.star_arg, cst.Param):
    yield params.star_arg
  yield from params.kwonly_params
  if params.star_kwarg is not None:
    yield params.star_kwarg


def check_parameters(params: cst.Parameters) -> None:
  """
  Rejects parameters the snapshot cannot represent.

  Args:
      params: The function's parameter list.

  Raises:
      UnsupportedSyntaxError: If a parameter shadows a reserved rewriter name.
  """
  for param in iter_parameters(params):
    if is_reserved(param.name.value):
      raise UnsupportedSyntaxError(
        f"parameter '{param.name.value}' uses the reserved '_fnlog_' prefix",
        node=param,
      )


def serialized_names(params: cst.Parameters, is_method: bool = False) -> List[str]:
  """
  Names of the parameters that appear in the snapshot.

  Args:
      params: The function's parameter list.
      is_method: Drop the first positional parameter (the receiver).

  Returns:
      List[str]: Parameter names in declaration order.
  """
  names = [p.name.value for p in iter_parameters(params)]
  positional = len(params.posonly_params) + len(params.params)
  if is_method and positional:
    names = names[1:]
  return names


def build_args_snapshot(params: cst.Parameters, is_method: bool = False) -> List[cst.SimpleStatementLine]:
  """
  Generates the statements that build the snapshot at function entry.

  Example output::

      _fnlog_args = []
      _fnlog_args.append(f"x: {x!r}")

  Args:
      params: The function's parameter list.
      is_method: Whether the first positional parameter is a receiver.

  Returns:
      List[cst.SimpleStatementLine]: Statements to place at the start of the body.

  Raises:
      UnsupportedSyntaxError: See ``check_parameters``.
  """
  check_parameters(params)

  stmts = [cst.parse_statement(f"{ARGS_SLOT} = []")]
  for name in serialized_names(params, is_method):
    stmts.append(cst.parse_statement(f'{ARGS_SLOT}.append(f"{name}: {{{name}!r}}")'))
  return stmts

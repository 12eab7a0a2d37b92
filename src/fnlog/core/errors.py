"""
Build Diagnostics.

Failures the rewriter reports instead of generating code. Each carries the
source position of the offending token so the message can be anchored the
way a compiler would anchor it.
"""

from typing import Optional

import libcst as cst
from libcst.metadata import CodeRange


class InstrumentationError(Exception):
  """
  Base class for build-time failures of the rewriter.

  Attributes:
      message (str): Human-readable description.
      line (Optional[int]): 1-based line of the offending token.
      column (Optional[int]): 0-based column of the offending token.
      filename (Optional[str]): Source file, when known.
      node (Optional[cst.CSTNode]): The offending node, used to resolve positions later.
  """

  def __init__(
    self,
    message: str,
    node: Optional[cst.CSTNode] = None,
    line: Optional[int] = None,
    column: Optional[int] = None,
    filename: Optional[str] = None,
  ):
    super().__init__(message)
    self.message = message
    self.node = node
    self.line = line
    self.column = column
    self.filename = filename

  def at(self, position: Optional[CodeRange], filename: Optional[str] = None) -> "InstrumentationError":
    """
    Anchors the error at a resolved code range.

    Args:
        position: The range from ``PositionProvider`` (or None if unknown).
        filename: Optional source file name.

    Returns:
        InstrumentationError: self, for chaining.
    """
    if position is not None:
      self.line = position.start.line
      self.column = position.start.column
    if filename is not None:
      self.filename = filename
    return self

  def format(self) -> str:
    """
    Renders the diagnostic as ``file:line:col: message``.

    Returns:
        str: The formatted diagnostic.
    """
    location = self.filename or "<string>"
    if self.line is not None:
      location = f"{location}:{self.line}:{self.column or 0}"
    return f"{location}: {self.message}"

  def __str__(self) -> str:
    return self.format()


class DirectiveError(InstrumentationError):
  """Invalid arity, type or value of the logging directive."""


class UnsupportedSyntaxError(InstrumentationError):
  """A construct the rewriter cannot instrument faithfully."""

"""
Structured log record emitted at every exit of an instrumented function.
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class LogRecord:
  """
  One function exit.

  Attributes:
      fn_name: Name of the instrumented function.
      fn_args: ``"name: repr(value)"`` strings captured at entry, in declaration order.
      fn_return: ``repr`` of the result, or of the "nothing" / "ignored" sentinels.
  """

  fn_name: str
  fn_args: Tuple[str, ...] = ()
  fn_return: str = ""

  def __post_init__(self) -> None:
    # The snapshot list keeps living in the function; freeze a copy of it
    object.__setattr__(self, "fn_args", tuple(self.fn_args))

  def format(self) -> str:
    """Renders the record the way it appears in log output."""
    return f"{self.fn_name}({', '.join(self.fn_args)}) -> {self.fn_return}"

  def to_dict(self) -> Dict[str, Any]:
    return {"fn_name": self.fn_name, "fn_args": list(self.fn_args), "fn_return": self.fn_return}

  def __str__(self) -> str:
    return self.format()

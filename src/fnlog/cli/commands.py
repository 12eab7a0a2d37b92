"""
CLI Command Handlers Facade.

Re-exports handlers from ``fnlog.cli.handlers`` so the entry point and the
tests patch a single module.
"""

from fnlog.cli.handlers.check import handle_check
from fnlog.cli.handlers.instrument import (
  handle_instrument,
  _instrument_single_file,
  _print_batch_summary,
)

__all__ = [
  "_instrument_single_file",
  "_print_batch_summary",
  "handle_check",
  "handle_instrument",
]

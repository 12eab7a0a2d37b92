from .instrument import handle_instrument, _instrument_single_file, _print_batch_summary
from .check import handle_check

__all__ = [
  "_instrument_single_file",
  "_print_batch_summary",
  "handle_check",
  "handle_instrument",
]

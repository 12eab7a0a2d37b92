"""
Entry point for module execution (``python -m fnlog``).

This module delegates execution to the CLI handler in ``fnlog.cli.__main__``.
"""

import sys
from fnlog.cli.__main__ import main

if __name__ == "__main__":
  sys.exit(main())

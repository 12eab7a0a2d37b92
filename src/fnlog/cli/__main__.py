"""
Main Entry Point for the fnlog CLI.

This module handles argument parsing and dispatches to specific command
handlers defined in ``fnlog.cli.commands``.
"""

import argparse
from pathlib import Path
from typing import List, Optional

from fnlog import __version__
from fnlog.cli import commands


def main(argv: Optional[List[str]] = None) -> int:
  """
  Main CLI entry point.

  Args:
      argv: Optional list of command line arguments (defaults to sys.argv).

  Returns:
      int: Exit code (0 for success, non-zero for failure).
  """
  parser = argparse.ArgumentParser(description="fnlog: Function entry/exit logging by source rewriting")
  parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

  subparsers = parser.add_subparsers(dest="command", required=True)

  # --- Command: INSTRUMENT ---
  cmd_inst = subparsers.add_parser("instrument", help="Rewrite marked functions in a file or directory")
  cmd_inst.add_argument("path", type=Path, help="Input source file or directory")
  cmd_inst.add_argument("--out", type=Path, help="Output destination (file or dir)")
  cmd_inst.add_argument(
    "--strict",
    action="store_true",
    default=None,
    help="Reject unknown directive literals instead of ignoring them (Overrides config)",
  )
  cmd_inst.add_argument("--severity", default=None, help="Logging level of emitted records (default: from toml, DEBUG)")
  cmd_inst.add_argument(
    "--no-runtime-import",
    dest="runtime_import",
    action="store_false",
    default=None,
    help="Do not add the fnlog.runtime handle import",
  )
  cmd_inst.add_argument(
    "--json-trace", type=Path, default=None, help="Dump the instrumentation trace (phases, exits) to a JSON file."
  )

  # --- Command: CHECK ---
  cmd_check = subparsers.add_parser("check", help="Validate logging directives without rewriting")
  cmd_check.add_argument("path", type=Path, help="Input source file or directory")
  cmd_check.add_argument(
    "--strict",
    action="store_true",
    default=None,
    help="Treat unknown directive literals as errors (Overrides config)",
  )

  args = parser.parse_args(argv)

  if args.command == "instrument":
    return commands.handle_instrument(
      args.path, args.out, args.strict, args.severity, args.runtime_import, args.json_trace
    )

  elif args.command == "check":
    return commands.handle_check(args.path, args.strict)

  return 1


if __name__ == "__main__":
  raise SystemExit(main())

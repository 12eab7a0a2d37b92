"""
Check Command Handler.

Validates the logging directives of a file or tree without rewriting anything.
Diagnostics are printed as ``file:line:col: message``.
"""

from pathlib import Path
from typing import List, Optional

import libcst as cst

from fnlog.config import RuntimeConfig
from fnlog.core.errors import InstrumentationError
from fnlog.core.validation import DirectiveScanner
from fnlog.utils.console import console, log_error, log_success


def handle_check(path: Path, strict: Optional[bool] = None) -> int:
  """
  Scans a directory/file for invalid logging directives.

  Args:
      path: Input source file or directory.
      strict: Treat unknown directive literals as errors (overrides config).

  Returns:
      int: 0 if no errors were found, 1 otherwise.
  """
  if not path.exists():
    log_error(f"Path not found: {path}")
    return 1

  try:
    config = RuntimeConfig.load(strict_mode=strict, search_path=path if path.is_dir() else path.parent)
  except ValueError as e:
    log_error(f"Invalid configuration: {e}")
    return 1

  files = [path] if path.is_file() else sorted(path.rglob("*.py"))

  errors: List[InstrumentationError] = []
  warnings: List[InstrumentationError] = []
  marked = 0

  for file_path in files:
    try:
      code = file_path.read_text(encoding="utf-8")
      tree = cst.parse_module(code)
    except (OSError, cst.ParserSyntaxError) as e:
      errors.append(InstrumentationError(f"cannot parse: {e}", filename=str(file_path)))
      continue

    scanner = DirectiveScanner(config, filename=str(file_path))
    cst.MetadataWrapper(tree).visit(scanner)
    errors.extend(scanner.errors)
    warnings.extend(scanner.warnings)
    marked += scanner.marked_functions

  for warning in warnings:
    console.print(f"[yellow]warning[/yellow]: {warning.format()}", highlight=False)
  for err in errors:
    console.print(f"[bold red]error[/bold red]: {err.format()}", highlight=False)

  if errors:
    log_error(f"{len(errors)} error(s) in {len(files)} file(s).")
    return 1

  log_success(f"{marked} marked function(s) in {len(files)} file(s) are valid.")
  return 0

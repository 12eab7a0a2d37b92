"""
Instrument Command Handler.

Implements ``fnlog instrument``:
1. Configuration loading (pyproject.toml + CLI overrides).
2. Rewriting each file via the ``InstrumentEngine``.
3. Output writing, trace dumping and the batch summary.
"""

import json
from pathlib import Path
from typing import Dict, Optional

from rich.table import Table

from fnlog.config import RuntimeConfig
from fnlog.core.engine import InstrumentEngine, InstrumentResult
from fnlog.utils.console import console, log_error, log_info, log_success, log_warning


def handle_instrument(
  input_path: Path,
  output_path: Optional[Path],
  strict: Optional[bool],
  severity: Optional[str] = None,
  inject_runtime_import: Optional[bool] = None,
  json_trace_path: Optional[Path] = None,
) -> int:
  """
  Handles the 'instrument' command execution.

  Args:
      input_path: Source file or directory.
      output_path: Destination file or directory. A single file is printed to stdout when omitted.
      strict: Reject unknown directive literals (overrides config).
      severity: Level of the emitted records (overrides config).
      inject_runtime_import: Whether to add the runtime handle import (overrides config).
      json_trace_path: Optional path to dump execution trace JSON.

  Returns:
      int: Exit code (0 for success, 1 if any file failed).
  """
  if not input_path.exists():
    log_error(f"Input not found: {input_path}")
    return 1

  try:
    config = RuntimeConfig.load(
      strict_mode=strict,
      severity=severity,
      inject_runtime_import=inject_runtime_import,
      search_path=input_path if input_path.is_dir() else input_path.parent,
    )
  except ValueError as e:
    log_error(f"Invalid configuration: {e}")
    return 1

  batch_results: Dict[str, InstrumentResult] = {}

  if input_path.is_file():
    result = _instrument_single_file(input_path, output_path, config, json_trace_path)
    batch_results[input_path.name] = result
    if not result.success:
      for err in result.errors:
        log_error(err)
      return 1
    for warning in result.warnings:
      log_warning(warning)
    return 0

  if not output_path:
    log_error("Directory instrumentation requires --out destination directory.")
    return 1

  py_files = sorted(input_path.rglob("*.py"))
  if not py_files:
    log_warning(f"No .py files found in {input_path}")
    return 0

  log_info(f"Processing {len(py_files)} files from {input_path}...")

  for src_file in py_files:
    rel_path = src_file.relative_to(input_path)
    dest_file = output_path / rel_path

    batch_trace = None
    if json_trace_path:
      # One trace per file, next to its output
      batch_trace = dest_file.with_suffix(".trace.json")

    batch_results[str(rel_path)] = _instrument_single_file(src_file, dest_file, config, batch_trace)

  _print_batch_summary(batch_results)
  return 0 if all(r.success for r in batch_results.values()) else 1


def _instrument_single_file(
  input_path: Path,
  output_path: Optional[Path],
  config: RuntimeConfig,
  json_trace_path: Optional[Path] = None,
) -> InstrumentResult:
  """
  Instruments one file.

  A failed file is never written, so the output tree holds no partial expansion.

  Args:
      input_path: Source file path.
      output_path: Destination file path (stdout if None).
      config: Runtime configuration object.
      json_trace_path: Path to save trace event logs.

  Returns:
      InstrumentResult: Result object containing status and code.
  """
  try:
    with open(input_path, "rt", encoding="utf-8") as f:
      code = f.read()
  except OSError as e:
    log_error(f"Failed to read {input_path}: {e}")
    return InstrumentResult(success=False, errors=[str(e)])

  engine = InstrumentEngine(config=config, filename=str(input_path))
  result = engine.run(code)

  if json_trace_path and result.trace_events:
    try:
      json_trace_path.parent.mkdir(parents=True, exist_ok=True)
      with open(json_trace_path, "wt", encoding="utf-8") as f:
        json.dump(result.trace_events, f, indent=2)
      log_info(f"Trace saved to [bold blue]{json_trace_path}[/bold blue]")
    except OSError as e:
      log_error(f"Failed to write trace: {e}")

  if not result.success:
    return result

  if output_path:
    try:
      output_path.parent.mkdir(parents=True, exist_ok=True)
      with open(output_path, "wt", encoding="utf-8") as f:
        f.write(result.code)
    except OSError as e:
      log_error(f"Failed to write {output_path}: {e}")
      return InstrumentResult(code=result.code, success=False, errors=[str(e)])
    count = len(result.instrumented_functions)
    log_success(f"Instrumented {count} function(s): [bold blue]{input_path}[/bold blue] -> [bold blue]{output_path}[/bold blue]")
  else:
    print(result.code, end="")

  return result


def _print_batch_summary(results: Dict[str, InstrumentResult]) -> None:
  """
  Renders a summary table of instrumentation results to the console.

  Args:
      results: Dictionary mapping filenames to results.
  """
  total = len(results)
  functions = sum(len(r.instrumented_functions) for r in results.values())
  clean = sum(1 for r in results.values() if r.success and not r.warnings)
  flagged = total - clean

  if flagged == 0:
    log_success(f"Batch Complete: {total}/{total} files, {functions} functions instrumented.")
    return

  table = Table(title="Instrumentation Report")
  table.add_column("File", style="cyan")
  table.add_column("Status", justify="center")
  table.add_column("Issues", style="red")

  for filename, res in results.items():
    if res.success and not res.warnings:
      continue
    status = "❌ Failed" if not res.success else "⚠️ Warnings"
    issues = "; ".join(res.errors or res.warnings) or "Unknown Error"
    table.add_row(filename, status, issues)

  console.print(table)
  console.print(f"\n[bold]Summary:[/bold] {clean} Clean, {flagged} with Issues, {functions} functions instrumented.")

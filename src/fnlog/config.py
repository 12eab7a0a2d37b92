"""
Runtime Configuration Store.

Settings that shape the generated instrumentation: which decorator marks a
function, how unknown directives are treated, the severity of emitted records
and the names of the runtime handles.
"""

import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from pydantic import BaseModel, Field, field_validator

if sys.version_info >= (3, 11):
  import tomllib
else:
  try:
    import tomli as tomllib
  except ImportError:
    tomllib = None  # type: ignore


class RuntimeConfig(BaseModel):
  """
  Global configuration container for the instrumentation engine.
  """

  decorator_name: str = Field("log_function", description="Name of the marker decorator (last dotted segment).")
  strict_mode: bool = Field(False, description="If True, reject unrecognised directive literals.")
  severity: str = Field("DEBUG", description="Logging level name used for every emitted record.")
  context_key: str = Field("fn_name", description="Diagnostic context key holding the function name.")
  inject_runtime_import: bool = Field(True, description="Bind the runtime handles with a module-level import.")
  runtime_module: str = Field("fnlog.runtime", description="Module the runtime handles are imported from.")

  @field_validator("decorator_name")
  @classmethod
  def validate_identifier(cls, v: str) -> str:
    """
    Ensures the decorator name can appear in source as a bare identifier.

    Args:
        v (str): The configured name.

    Returns:
        str: The stripped name.

    Raises:
        ValueError: If the value is not a valid identifier.
    """
    v_clean = v.strip()
    if not v_clean.isidentifier():
      raise ValueError(f"Decorator name must be an identifier, got '{v}'")
    return v_clean

  @field_validator("severity")
  @classmethod
  def validate_severity(cls, v: str) -> str:
    """
    Normalises the severity to an upper-case level name known to ``logging``.

    Args:
        v (str): The level name (case-insensitive).

    Returns:
        str: The normalised level name (e.g. 'DEBUG').

    Raises:
        ValueError: If the level is not registered with ``logging``.
    """
    v_clean = v.strip().upper()
    if not isinstance(logging.getLevelName(v_clean), int):
      raise ValueError(f"Unknown logging level: '{v}'")
    return v_clean

  @field_validator("runtime_module")
  @classmethod
  def validate_module_path(cls, v: str) -> str:
    """Ensures the runtime module is a dotted identifier path."""
    if not all(part.isidentifier() for part in v.split(".")):
      raise ValueError(f"Invalid module path: '{v}'")
    return v

  @classmethod
  def load(
    cls,
    strict_mode: Optional[bool] = None,
    severity: Optional[str] = None,
    inject_runtime_import: Optional[bool] = None,
    search_path: Optional[Path] = None,
  ) -> "RuntimeConfig":
    """
    Loads configuration from pyproject.toml and overrides with CLI arguments.

    Args:
        strict_mode (Optional[bool]): Override for strict directive handling.
        severity (Optional[str]): Override for the emission level.
        inject_runtime_import (Optional[bool]): Override for handle import injection.
        search_path (Optional[Path]): Directory to start searching for TOML config.

    Returns:
        RuntimeConfig: The fully resolved configuration object.
    """
    start_dir = search_path or Path.cwd()
    toml_config, _ = _load_toml_settings(start_dir)

    settings: Dict[str, Any] = {k: v for k, v in toml_config.items() if k in cls.model_fields}

    if strict_mode is not None:
      settings["strict_mode"] = strict_mode
    if severity is not None:
      settings["severity"] = severity
    if inject_runtime_import is not None:
      settings["inject_runtime_import"] = inject_runtime_import

    return cls(**settings)


def _load_toml_settings(start_path: Path) -> Tuple[Dict[str, Any], Optional[Path]]:
  """
  Recursively searches parents for 'pyproject.toml' and extracts config.

  Args:
      start_path (Path): Directory to start search from.

  Returns:
      Tuple[Dict, Optional[Path]]: The config dict and the directory definition was found in.
  """
  if not tomllib:
    return {}, None

  current = start_path.resolve()

  for parent in [current, *current.parents]:
    toml_path = parent / "pyproject.toml"
    if toml_path.exists() and toml_path.is_file():
      try:
        with open(toml_path, "rb") as f:
          data = tomllib.load(f)
      except (OSError, tomllib.TOMLDecodeError):
        return {}, None

      tool_section = data.get("tool", {})
      return tool_section.get("fnlog", {}), parent

  return {}, None

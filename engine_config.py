"""
engine_config.py - Engine Settings, Self-Validating Loader

EngineSettings is the control plane for the fleet driver and the command
line: where runs and categories live, leaderboard and spectral capacities,
scoring thresholds, and the bounds the config policy draws from.

Design Principles:
- Self-validating: JSON Schema (Draft 2020-12) checked on every load
- Self-healing: invalid values -> safe defaults or clamped values + warnings
- Strict mode: raise ValueError instead of healing
- Immutable: frozen after load

load_run_config() reads a single RunConfig from JSON or YAML and validates
it with the engine's own rules.
"""

import json
import warnings
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from jsonschema import Draft202012Validator

from grid.constants import (
    BAND_THRESHOLD,
    LEADERBOARD_CAPACITY,
    SPECTRAL_CADENCE,
    SPECTRAL_THRESHOLD,
    SPECTRAL_WINDOW_CAPACITY,
)
from grid.types_config import RunConfig
from grid.validation import validate_config

__all__ = [
    "EngineSettings",
    "load",
    "from_dict",
    "load_run_config",
    "read_structured",
]


# =============================================================================
# JSON Schema Definition (Draft 2020-12)
# =============================================================================

_JSON_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "title": "EngineSettings",
    "description": "Grid simulation engine settings",
    "type": "object",
    "properties": {
        "runs_dir": {"type": "string", "minLength": 1},
        "categories_dir": {"type": "string", "minLength": 1},
        "counter_path": {"type": "string", "minLength": 1},
        "leaderboard_capacity": {"type": "integer", "minimum": 1, "maximum": 100000},
        "spectral_capacity": {"type": "integer", "minimum": 10, "maximum": 100000},
        "spectral_cadence": {"type": "integer", "minimum": 1, "maximum": 10000},
        "n_bots": {"type": "integer", "minimum": 1, "maximum": 256},
        "band_threshold": {"type": "integer", "minimum": 1, "maximum": 1000},
        "spectral_threshold": {"type": "number", "minimum": 0.0, "maximum": 1.0},
        "seed": {"type": ["integer", "null"]},
        "min_steps": {"type": "integer", "minimum": 1},
        "max_steps": {"type": "integer", "minimum": 1},
        "min_grid": {"type": "integer", "minimum": 1},
        "max_grid": {"type": "integer", "minimum": 1},
        "max_inversions": {"type": "integer", "minimum": 0, "maximum": 64},
    },
    "additionalProperties": False,
}

Draft202012Validator.check_schema(_JSON_SCHEMA)
_COMPILED_VALIDATOR = Draft202012Validator(_JSON_SCHEMA)


@dataclass(frozen=True)
class EngineSettings:
    """Frozen engine settings."""
    runs_dir: str = "runs"
    categories_dir: str = "categories"
    counter_path: str = "run_counter.txt"
    leaderboard_capacity: int = LEADERBOARD_CAPACITY
    spectral_capacity: int = SPECTRAL_WINDOW_CAPACITY
    spectral_cadence: int = SPECTRAL_CADENCE
    n_bots: int = 8
    band_threshold: int = BAND_THRESHOLD
    spectral_threshold: float = SPECTRAL_THRESHOLD
    seed: Optional[int] = None
    min_steps: int = 10000
    max_steps: int = 110000
    min_grid: int = 5
    max_grid: int = 20
    max_inversions: int = 3

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def resolve(self, base: Union[str, Path]) -> "EngineSettings":
        """Copy with relative paths anchored at `base`."""
        base = Path(base)
        updates = {}
        for name in ("runs_dir", "categories_dir", "counter_path"):
            value = Path(getattr(self, name))
            updates[name] = str(value if value.is_absolute() else base / value)
        return EngineSettings(**{**self.to_dict(), **updates})


_DEFAULTS = EngineSettings().to_dict()
_FIELD_NAMES = frozenset(f.name for f in fields(EngineSettings))


# =============================================================================
# Module-Level Functions
# =============================================================================

def read_structured(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a JSON or YAML mapping from disk.

    Raises:
        FileNotFoundError: If path doesn't exist
        ValueError: If the document is not a mapping
    """
    path_obj = Path(path)
    if not path_obj.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    content = path_obj.read_text()
    if path_obj.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(content)
    else:
        data = json.loads(content)

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping, got {type(data).__name__}")
    return data


def load(path: Union[str, Path], strict: bool = False) -> EngineSettings:
    """
    Load settings from a JSON/YAML file.

    Args:
        path: Path to settings file
        strict: If True, raise on invalid; if False, self-heal with warnings

    Returns:
        Validated, frozen EngineSettings

    Raises:
        FileNotFoundError: If path doesn't exist
        ValueError: If strict=True and validation fails
    """
    return from_dict(read_structured(path), strict=strict)


def from_dict(data: Dict[str, Any], strict: bool = False) -> EngineSettings:
    """Build EngineSettings from a mapping, validating first."""
    errors = _validate(data)
    all_warnings: List[str] = []

    if errors:
        if strict:
            raise ValueError("Settings validation failed:\n" + "\n".join(f"  - {e}" for e in errors))
        data = _self_heal(data, all_warnings)
        remaining = _validate(data)
        if remaining:
            raise ValueError("Settings validation failed after self-healing:\n" +
                             "\n".join(f"  - {e}" for e in remaining))

    for w in all_warnings:
        warnings.warn(f"EngineSettings: {w}", UserWarning, stacklevel=3)

    return EngineSettings(**{**_DEFAULTS, **data})


def load_run_config(path: Union[str, Path]) -> RunConfig:
    """
    Load one RunConfig from a JSON/YAML file (camelCase or snake_case keys).

    Raises:
        FileNotFoundError: If path doesn't exist
        ConfigError: If the config violates an engine invariant
    """
    return validate_config(RunConfig.from_dict(read_structured(path)))


# =============================================================================
# Internal Validation Functions
# =============================================================================

def _field_of(err) -> str:
    if err.path:
        return str(err.path[0])
    if err.validator == "additionalProperties":
        return ""
    return "<root>"


def _validate(data: Dict[str, Any]) -> List[str]:
    """
    Validate settings data.

    Rules:
    - Schema types and ranges
    - min_steps <= max_steps, min_grid <= max_grid
    """
    errors = []
    for err in _COMPILED_VALIDATOR.iter_errors(data):
        field = _field_of(err)
        errors.append(f"{field}: {err.message}" if field else err.message)

    for low, high in (("min_steps", "max_steps"), ("min_grid", "max_grid")):
        lo = data.get(low, _DEFAULTS[low])
        hi = data.get(high, _DEFAULTS[high])
        if isinstance(lo, int) and isinstance(hi, int) and lo > hi:
            errors.append(f"{low} {lo} exceeds {high} {hi}")
    return errors


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _self_heal(data: Dict[str, Any], warns: List[str]) -> Dict[str, Any]:
    """
    Apply self-healing to settings data.

    Self-healing behavior:
    - Unknown field -> ignore, add warning
    - Wrong type -> default, add warning
    - Out-of-range value -> clamp to valid range, add warning
    - Inverted bounds -> upper bound raised to the lower bound
    """
    healed = {}
    for key, value in data.items():
        if key not in _FIELD_NAMES:
            warns.append(f"Ignoring unknown field: {key}")
            continue
        healed[key] = value

    for key, value in list(healed.items()):
        prop = _JSON_SCHEMA["properties"][key]
        expected = prop["type"]
        if expected == "integer" and isinstance(value, float) and value.is_integer():
            healed[key] = value = int(value)
        if not _type_matches(value, expected):
            healed[key] = _DEFAULTS[key]
            warns.append(f"Invalid type for '{key}', using default: {_DEFAULTS[key]}")
            continue
        if _is_number(value):
            lo, hi = _range_of(prop)
            if lo is not None and value < lo:
                healed[key] = lo
                warns.append(f"Clamped {key} from {value} to {lo}")
            elif hi is not None and value > hi:
                healed[key] = hi
                warns.append(f"Clamped {key} from {value} to {hi}")
        elif isinstance(value, str) and not value:
            healed[key] = _DEFAULTS[key]
            warns.append(f"Empty '{key}', using default: {_DEFAULTS[key]}")

    for low, high in (("min_steps", "max_steps"), ("min_grid", "max_grid")):
        lo = healed.get(low, _DEFAULTS[low])
        hi = healed.get(high, _DEFAULTS[high])
        if lo > hi:
            healed[high] = lo
            warns.append(f"Raised {high} from {hi} to {lo}")

    return healed


def _type_matches(value: Any, expected: Union[str, List[str]]) -> bool:
    kinds = expected if isinstance(expected, list) else [expected]
    for kind in kinds:
        if kind == "null" and value is None:
            return True
        if kind == "string" and isinstance(value, str):
            return True
        if kind == "integer" and isinstance(value, int) and not isinstance(value, bool):
            return True
        if kind == "number" and _is_number(value):
            return True
    return False


def _range_of(prop: Dict[str, Any]) -> Tuple[Optional[float], Optional[float]]:
    return prop.get("minimum"), prop.get("maximum")

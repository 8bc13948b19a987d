"""
Application configuration management.

Load order (each layer overrides the previous):
  1. ``config/default.toml``      — committed static defaults
  2. ``config/local.toml``        — optional local overrides (gitignored)
  3. ``.env``                     — local env overrides (gitignored)
  4. Environment variables        — ``FOREST_AGGREGATOR_*`` prefix

Entry point: ``load_config(config_path=None) -> AppConfig``
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, field_validator

from forest_aggregator.ml.engine import VALID_BACKENDS
from forest_aggregator.ml.predictor import VALID_OVERLAP_POLICIES

# ── Sub-config models ─────────────────────────────────────────────────────────


class EngineConfig(BaseModel):
    """Inference backend selection."""

    model_config = ConfigDict(frozen=True)

    backend: str = "lightgbm"
    raw_score: bool = False

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v.lower() not in VALID_BACKENDS:
            raise ValueError(f"backend must be one of {sorted(VALID_BACKENDS)}, got '{v}'.")
        return v.lower()


class PredictionConfig(BaseModel):
    """Default output shape and fold handling for ``predict``."""

    model_config = ConfigDict(frozen=True)

    return_list: bool = False
    collapse: bool = True
    overlap_policy: str = "error"
    class_count: Optional[int] = None

    @field_validator("overlap_policy")
    @classmethod
    def validate_overlap_policy(cls, v: str) -> str:
        if v not in VALID_OVERLAP_POLICIES:
            raise ValueError(
                f"overlap_policy must be one of {sorted(VALID_OVERLAP_POLICIES)}, got '{v}'."
            )
        return v

    @field_validator("class_count")
    @classmethod
    def validate_class_count(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError(f"class_count must be >= 1, got {v}.")
        return v


class DataConfig(BaseModel):
    """Filesystem location for prediction output."""

    model_config = ConfigDict(frozen=True)

    output_dir: str = "data/predictions"


class LoggingConfig(BaseModel):
    """Logging output settings."""

    model_config = ConfigDict(frozen=True)

    level: str = "INFO"
    log_file: str = ""
    json_format: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {sorted(valid)}, got '{v}'.")
        return v.upper()


class AppConfig(BaseModel):
    """Complete application configuration.

    Constructed by ``load_config()`` which merges TOML + .env + environment.
    """

    model_config = ConfigDict(frozen=True)

    engine: EngineConfig = EngineConfig()
    prediction: PredictionConfig = PredictionConfig()
    data: DataConfig = DataConfig()
    logging: LoggingConfig = LoggingConfig()


# ── Loader ────────────────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).parent.parent


def _find_project_root() -> Path:
    """Walk up from this file to find the project root (contains pyproject.toml)."""
    candidate = Path(__file__).parent
    for _ in range(5):
        if (candidate / "pyproject.toml").exists():
            return candidate
        candidate = candidate.parent
    return _PROJECT_ROOT


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and merge application configuration.

    Args:
        config_path: Explicit path to a TOML config file. Defaults to
            ``<project_root>/config/default.toml``.

    Returns:
        Fully validated ``AppConfig`` instance.

    Raises:
        FileNotFoundError: If the specified ``config_path`` does not exist.
        pydantic.ValidationError: If merged config values fail validation.
    """
    root = _find_project_root()

    load_dotenv(dotenv_path=root / ".env", override=False)

    if config_path is None:
        config_path = root / "config" / "default.toml"

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, "rb") as f:
        raw: dict[str, Any] = tomllib.load(f)

    local_config_path = config_path.parent / "local.toml"
    if local_config_path.exists():
        with open(local_config_path, "rb") as f:
            local_raw: dict[str, Any] = tomllib.load(f)
        raw = _deep_merge(raw, local_raw)

    raw = _apply_env_overrides(raw)

    return _build_app_config(raw)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``."""
    result = dict(base)
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _apply_env_overrides(raw: dict[str, Any]) -> dict[str, Any]:
    """Apply FOREST_AGGREGATOR_* env vars to the raw config dict.

    Supported overrides:
      FOREST_AGGREGATOR_BACKEND        → raw["engine"]["backend"]
      FOREST_AGGREGATOR_OVERLAP_POLICY → raw["prediction"]["overlap_policy"]
      FOREST_AGGREGATOR_LOG_LEVEL      → raw["logging"]["level"]
    """
    if backend := os.environ.get("FOREST_AGGREGATOR_BACKEND"):
        raw.setdefault("engine", {})["backend"] = backend

    if policy := os.environ.get("FOREST_AGGREGATOR_OVERLAP_POLICY"):
        raw.setdefault("prediction", {})["overlap_policy"] = policy

    if log_level := os.environ.get("FOREST_AGGREGATOR_LOG_LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    return raw


def _build_app_config(raw: dict[str, Any]) -> AppConfig:
    """Map raw TOML dict to ``AppConfig`` model structure."""
    return AppConfig(
        engine=EngineConfig(**raw.get("engine", {})),
        prediction=PredictionConfig(**raw.get("prediction", {})),
        data=DataConfig(**raw.get("data", {})),
        logging=LoggingConfig(**raw.get("logging", {})),
    )

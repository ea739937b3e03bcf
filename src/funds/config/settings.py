"""
Configuration settings for the peloton fund calculator.
Handles the YAML run configuration, matcher presets and environment overrides.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

REPO_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_PATH = REPO_ROOT / "data" / "funds_config.yaml"
PRESETS_DIR = REPO_ROOT / "data" / "matcher_policies"


class SettingsError(ValueError):
    """The run configuration file is missing or malformed."""


class MatcherSettings(BaseModel):
    """Which company matching policy to use and its string properties."""

    name: str = "none"
    preset: Optional[str] = None
    properties: Dict[str, str] = Field(default_factory=dict)

    @field_validator("properties", mode="before")
    @classmethod
    def _stringify_properties(cls, value: Any) -> Any:
        # YAML turns `matcher_amount_volunteer: 0,25` into a string but `500` into an int.
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value

    @property
    def employee_spreadsheet(self) -> Optional[str]:
        return self.properties.get("matcher_spreadsheet")

    @property
    def employee_sheet_name(self) -> Optional[str]:
        return self.properties.get("matcher_sheetname")


class FundsSettings(BaseModel):
    """Everything one fund calculation run needs to know."""

    roster_path: Optional[str] = None
    roster_sheet: Optional[str] = None
    funds_path: Optional[str] = None
    funds_sheet: Optional[str] = None
    matcher: MatcherSettings = Field(default_factory=MatcherSettings)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def shared_funds_location(self) -> Optional[str]:
        """Shared funds live on the roster workbook unless a separate file is given."""
        return self.funds_path or self.roster_path

    @property
    def shared_funds_sheet(self) -> Optional[str]:
        """Without a separate funds file the table sits on the roster sheet."""
        if self.funds_sheet:
            return self.funds_sheet
        return None if self.funds_path else self.roster_sheet


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            doc = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise SettingsError(f"Invalid YAML in {path}: {e}") from e

    if doc is None:
        return {}
    if not isinstance(doc, dict):
        raise SettingsError(f"{path} must contain a mapping at the top level")
    return doc


def load_matcher_preset(preset: str, presets_dir: Path = PRESETS_DIR) -> Dict[str, Any]:
    """Load ``<presets_dir>/<preset>.yaml`` (keys: ``name``, ``properties``)."""

    path = presets_dir / f"{preset}.yaml"
    if not path.exists():
        raise SettingsError(f"Matcher preset not found: {path}")
    doc = _read_yaml(path)
    logger.info("Loaded matcher preset %s from %s", preset, path)
    return doc


def _apply_preset(matcher_doc: Dict[str, Any], presets_dir: Path) -> Dict[str, Any]:
    preset = matcher_doc.get("preset")
    if not preset:
        return matcher_doc

    preset_doc = load_matcher_preset(str(preset), presets_dir)
    merged_properties = dict(preset_doc.get("properties") or {})
    merged_properties.update(matcher_doc.get("properties") or {})

    merged = dict(matcher_doc)
    merged.setdefault("name", preset_doc.get("name", "none"))
    merged["properties"] = merged_properties
    return merged


def settings_from_dict(doc: Dict[str, Any], presets_dir: Path = PRESETS_DIR) -> FundsSettings:
    data = dict(doc)
    matcher_doc = data.get("matcher")
    if matcher_doc is not None:
        if not isinstance(matcher_doc, dict):
            raise SettingsError("matcher must be a mapping")
        data["matcher"] = _apply_preset(matcher_doc, presets_dir)

    try:
        return FundsSettings.model_validate(data)
    except ValidationError as e:
        raise SettingsError(str(e)) from e


def load_settings(
    path: Optional[str] = None,
    *,
    presets_dir: Path = PRESETS_DIR,
) -> FundsSettings:
    """Load settings from YAML, then apply environment overrides.

    Path resolution: explicit `path`, then ``FUNDS_CONFIG_PATH``, then
    ``data/funds_config.yaml``. A missing default file yields defaults; a
    missing explicit file is an error.

    Environment overrides: ``FUNDS_ROSTER_PATH``, ``FUNDS_MATCHER``,
    ``FUNDS_LOG_LEVEL``.
    """

    load_dotenv(override=False)

    explicit = path or os.environ.get("FUNDS_CONFIG_PATH")
    config_path = Path(explicit).expanduser() if explicit else DEFAULT_CONFIG_PATH

    if config_path.exists():
        doc = _read_yaml(config_path)
        logger.info("Loaded settings from %s", config_path)
    elif explicit:
        raise SettingsError(f"Settings file not found: {config_path}")
    else:
        doc = {}

    env_roster = os.environ.get("FUNDS_ROSTER_PATH")
    if env_roster:
        doc["roster_path"] = env_roster
    env_matcher = os.environ.get("FUNDS_MATCHER")
    if env_matcher:
        doc.setdefault("matcher", {})
        doc["matcher"] = {**(doc["matcher"] or {}), "name": env_matcher}
    env_level = os.environ.get("FUNDS_LOG_LEVEL")
    if env_level:
        doc["log_level"] = env_level

    return settings_from_dict(doc, presets_dir)

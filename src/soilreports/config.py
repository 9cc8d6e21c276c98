from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple, cast

from .domain.errors import ConfigError
from .types import ConfigOverrides, YamlConfig


@dataclass(frozen=True)
class Config:
    pipeline_version: str = "v1.0"
    rules_path: str = "configs/validation_rules.csv"
    data_sheet: str = "Data"
    dictionary_sheet: str = "Data Dictionary"
    id_column: str = "sample_id"
    producer_column: str = "producer_id"
    year_column: str = "year"
    field_column: str = "field_id"
    texture_column: str = "texture"
    # Header label of the texture ID column in summary tables
    texture_label: str = "Texture"
    # Never coerced to numbers even when listed in the dictionary
    excluded_columns: Tuple[str, ...] = ("texture",)
    average_label: str = "Project Average"
    language: str = "English"
    max_warnings: int = 50
    lighter_color: str = "#F2F0E6"
    darker_color: str = "#CCC29C"


def _read_yaml(path: Path) -> YamlConfig:
    import yaml

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Config {path} must be a mapping")
    return cast(YamlConfig, raw)


def load_config(path: Optional[Path], overrides: Optional[ConfigOverrides] = None) -> Config:
    data: YamlConfig = {}

    # Always load configs/config.yaml if it exists
    default_config = Path("configs/config.yaml")
    if default_config.exists():
        data.update(_read_yaml(default_config))

    # Then load custom config if provided (overrides default)
    if path is not None:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        data.update(_read_yaml(path))

    # Finally apply CLI overrides
    if overrides:
        data.update(cast(YamlConfig, {k: v for k, v in overrides.items() if v is not None}))

    excluded = data.get("excluded_columns")
    if isinstance(excluded, str):
        excluded = [c.strip() for c in excluded.split(",") if c.strip()]

    defaults = Config()
    try:
        cfg = Config(
            pipeline_version=str(data.get("pipeline_version", defaults.pipeline_version)),
            rules_path=str(data.get("rules_path", defaults.rules_path)),
            data_sheet=str(data.get("data_sheet", defaults.data_sheet)),
            dictionary_sheet=str(data.get("dictionary_sheet", defaults.dictionary_sheet)),
            id_column=str(data.get("id_column", defaults.id_column)),
            producer_column=str(data.get("producer_column", defaults.producer_column)),
            year_column=str(data.get("year_column", defaults.year_column)),
            field_column=str(data.get("field_column", defaults.field_column)),
            texture_column=str(data.get("texture_column", defaults.texture_column)),
            texture_label=str(data.get("texture_label", defaults.texture_label)),
            excluded_columns=(
                tuple(str(c) for c in excluded)
                if excluded is not None
                else defaults.excluded_columns
            ),
            average_label=str(data.get("average_label", defaults.average_label)),
            language=str(data.get("language", defaults.language)),
            max_warnings=int(data.get("max_warnings", defaults.max_warnings)),
            lighter_color=str(data.get("lighter_color", defaults.lighter_color)),
            darker_color=str(data.get("darker_color", defaults.darker_color)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration value: {e}") from e
    return cfg

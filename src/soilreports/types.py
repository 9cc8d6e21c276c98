from __future__ import annotations

from typing import List, TypedDict


class ManifestInputsEntry(TypedDict):
    path: str
    sha256: str


class ManifestInputs(TypedDict):
    workbook: ManifestInputsEntry
    rules: ManifestInputsEntry


class ManifestParameters(TypedDict):
    producer: str
    year: str
    group_by: str | None
    language: str
    data_sheet: str
    dictionary_sheet: str


class ManifestEnvironment(TypedDict):
    python: str
    platform: str
    pandas: str


class ManifestOutcome(TypedDict):
    errors: int
    warnings: int
    tables: List[str]


class Manifest(TypedDict):
    pipeline_version: str
    started_at: str
    finished_at: str
    inputs: ManifestInputs
    parameters: ManifestParameters
    environment: ManifestEnvironment
    outcome: ManifestOutcome


class ConfigOverrides(TypedDict, total=False):
    pipeline_version: str
    rules_path: str
    language: str
    max_warnings: int
    average_label: str


class YamlConfig(TypedDict, total=False):
    pipeline_version: str
    rules_path: str
    data_sheet: str
    dictionary_sheet: str
    id_column: str
    producer_column: str
    year_column: str
    field_column: str
    texture_column: str
    texture_label: str
    excluded_columns: List[str]
    average_label: str
    language: str
    max_warnings: int
    lighter_color: str
    darker_color: str

"""Configuration management for nanopub-view using pydantic-settings.

Settings priority (highest to lowest):
1. CLI flags (applied after NanopubConfig creation)
2. Environment variables (NANOPUB_* prefix)
3. .env file
4. nanopub.yaml project config
5. Default values
"""

import logging
from pathlib import Path

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("table", "json", "yaml")

# Map nanopub.yaml keys to NanopubConfig field names
_YAML_TO_FIELD = {
    "templates": "template_dir",
    "labels": "labels_file",
    "format": "output_format",
    "heuristic_labels": "heuristic_labels",
}


class _ProjectYamlSource(PydanticBaseSettingsSource):
    """Read project config from nanopub.yaml (lower priority than env vars)."""

    def get_field_value(self, field, field_name):  # type: ignore[override]
        return None, field_name, False

    def __call__(self) -> dict:
        project_file = Path("nanopub.yaml")
        if not project_file.exists():
            return {}

        raw = yaml.safe_load(project_file.read_text()) or {}

        result: dict = {}
        for yaml_key, field_name in _YAML_TO_FIELD.items():
            if yaml_key in raw:
                result[field_name] = raw[yaml_key]
        return result


class NanopubConfig(BaseSettings):
    """Configuration settings for nanopub-view.

    All environment variables are prefixed with NANOPUB_
    (e.g. NANOPUB_TEMPLATE_DIR). Empty values are treated as unset.

    Example:
        >>> config = NanopubConfig()
        >>> config.output_format
        'table'
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="NANOPUB_",
        extra="ignore",
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            _ProjectYamlSource(settings_cls),
            file_secret_settings,
        )

    template_dir: Path | None = Field(
        default=None,
        description="Directory searched for <template-id>.trig when no template is given"
    )

    labels_file: Path | None = Field(
        default=None,
        description="YAML file mapping IRIs to labels (or {label, description})"
    )

    output_format: str = Field(
        default="table",
        description="Default output format: table, json or yaml"
    )

    heuristic_labels: bool = Field(
        default=True,
        description="Derive labels from IRI path segments when no label is known"
    )

    @field_validator("output_format")
    @classmethod
    def validate_output_format(cls, v: str) -> str:
        v = v.lower()
        if v not in OUTPUT_FORMATS:
            raise ValueError(
                f"Invalid output format: {v!r}. Choose from: {', '.join(OUTPUT_FORMATS)}"
            )
        return v

    def find_template(self, template_id: str) -> Path | None:
        """Look up ``<template_id>.trig`` in the template directory.

        Args:
            template_id: Last path segment of a template URI

        Returns:
            Path to the template file, or None if not configured or missing
        """
        if not self.template_dir or not template_id:
            return None
        for suffix in (".trig", ".ttl"):
            candidate = self.template_dir / f"{template_id}{suffix}"
            if candidate.exists():
                return candidate
        logger.debug(f"Template {template_id} not found in {self.template_dir}")
        return None

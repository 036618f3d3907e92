"""
Gateway configuration management.

Loads settings and layout definitions from YAML files, applies environment
overrides, and provides a builder for layout definitions in code.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from recordgate.core.models import FieldDescriptor, GatewaySettings

# Environment variable -> (section, key)
ENV_OVERRIDES = {
    "RECORDGATE_DIAGNOSTICS": ("settings", "diagnostics"),
    "RECORDGATE_DATABASE": ("settings", "default_database"),
    "DB_HOST": ("database", "host"),
    "DB_PORT": ("database", "port"),
    "DB_NAME": ("database", "name"),
    "DB_USER": ("database", "user"),
    "DB_PASSWORD": ("database", "password"),
}


class GatewayConfigLoader:
    """
    Loads gateway settings from a YAML configuration file.

    Expected YAML format:
    ```yaml
    settings:
      diagnostics: true
      default_database: crm
      operation_defaults:
        update_else_create: false
        container_encoding: base64

    database:
      host: localhost
      port: 5432
      name: recordgate

    layouts:
      contacts:
        - name: email
        - name: phone
          max_repeat: 3
        - name: photo
          result_type: container
    ```
    """

    def __init__(self, config_path: str | Path | None = None, env_file: str | Path | None = None):
        """
        Initialize the config loader.

        Args:
            config_path: Path to the YAML configuration file; None uses
                defaults and environment variables only
            env_file: Optional .env file loaded before reading the environment
        """
        self.config_path = Path(config_path) if config_path is not None else None
        if self.config_path is not None and not self.config_path.exists():
            raise FileNotFoundError(f"Gateway configuration file not found: {config_path}")
        self.env_file = Path(env_file) if env_file is not None else None

    def load(self) -> GatewaySettings:
        """
        Load and validate the configuration.

        Returns:
            GatewaySettings

        Raises:
            ValueError: If YAML is invalid or fails validation
        """
        config: dict[str, Any] = {}
        if self.config_path is not None:
            with open(self.config_path) as f:
                loaded = yaml.safe_load(f)
            if loaded is not None and not isinstance(loaded, dict):
                raise ValueError("Configuration file must contain a mapping at the top level")
            config = loaded or {}

        sections = {
            "settings": dict(config.get("settings") or {}),
            "database": dict(config.get("database") or {}),
        }
        self._apply_environment(sections)

        data = dict(sections["settings"])
        data["database"] = sections["database"]
        data["layouts"] = self._parse_layouts(config.get("layouts") or {})

        try:
            return GatewaySettings.model_validate(data)
        except ValidationError as e:
            raise ValueError(f"Invalid gateway configuration: {e}") from e

    def _apply_environment(self, sections: dict[str, dict[str, Any]]) -> None:
        if self.env_file is not None:
            load_dotenv(self.env_file, override=True)

        for variable, (section, key) in ENV_OVERRIDES.items():
            value = os.getenv(variable)
            if value is not None and value != "":
                sections[section][key] = value

    def _parse_layouts(self, layouts: Any) -> dict[str, list[dict[str, Any]]]:
        """
        Validate the shape of the layouts section.

        Raises:
            ValueError: If a layout is not a list of field mappings with names
        """
        if not isinstance(layouts, dict):
            raise ValueError("'layouts' section must be a mapping of layout name to field list")

        parsed = {}
        for layout, fields in layouts.items():
            if not isinstance(fields, list):
                raise ValueError(f"Fields for layout '{layout}' must be a list")
            for idx, field_def in enumerate(fields):
                if not isinstance(field_def, dict) or "name" not in field_def:
                    raise ValueError(f"Field {idx} of layout '{layout}' is missing 'name'")
            parsed[str(layout)] = fields
        return parsed


class LayoutConfigBuilder:
    """
    Programmatically build layout definitions (for testing or dynamic layouts).
    """

    def __init__(self):
        self.fields: list[FieldDescriptor] = []

    def add_field(
        self,
        name: str,
        max_repeat: int = 1,
        result_type: str = "text",
        auto_entered: bool = False,
        is_global: bool = False,
    ) -> "LayoutConfigBuilder":
        """Add a field definition."""
        self.fields.append(FieldDescriptor(
            name=name,
            max_repeat=max_repeat,
            result_type=result_type,
            auto_entered=auto_entered,
            is_global=is_global,
        ))
        return self

    def add_repeating_field(self, name: str, max_repeat: int) -> "LayoutConfigBuilder":
        """Add a text field with repetitions."""
        return self.add_field(name, max_repeat=max_repeat)

    def add_container_field(self, name: str) -> "LayoutConfigBuilder":
        """Add a container (blob) field."""
        return self.add_field(name, result_type="container")

    def build(self) -> list[FieldDescriptor]:
        """Build and return the layout field definitions."""
        return list(self.fields)

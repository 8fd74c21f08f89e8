from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from ansible_lightspeed_context.errors import ConfigurationError


class SuggestionSettings(BaseModel):
    """Settings for inline suggestions."""

    enabled: bool = True


class LightspeedSettings(BaseModel):
    """
    Configuration of the Lightspeed service as read from the `lightspeed:`
    section of the settings file.
    """

    enabled: bool = True
    url: str = ""
    model_id: str | None = None
    suggestions: SuggestionSettings = Field(default_factory=SuggestionSettings)
    language_id: str = "ansible"
    timeout: int = 30

    @field_validator("url", mode="before")
    def strip_url(cls, v):
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("model_id", mode="before")
    def empty_model_id_to_none(cls, v):
        if v is None or not str(v).strip():
            return None
        return str(v).strip()

    @property
    def suggestions_enabled(self) -> bool:
        return self.enabled and self.suggestions.enabled

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "LightspeedSettings":
        try:
            return cls.model_validate((data or {}).get("lightspeed") or {})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid Lightspeed settings: {e}") from e

    @classmethod
    def from_file(cls, config_path: str) -> "LightspeedSettings":
        """Creates the settings by loading the YAML settings file."""
        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f)
        except (IOError, yaml.YAMLError) as e:
            raise ConfigurationError(
                f"Error reading or parsing settings file '{config_path}': {e}"
            ) from e

        if data is not None and not isinstance(data, dict):
            raise ConfigurationError(
                f"Settings file '{config_path}' must contain a mapping."
            )
        return cls.from_dict(data)

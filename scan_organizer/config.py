"""Application configuration via pydantic-settings.

Settings are organized into logical groups and composed into a single,
frozen Settings snapshot. Values come from environment variables (or a .env
file). Components receive a snapshot at construction time; use
`reload_settings()` or `Settings.with_updates()` to obtain a new one.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from scan_organizer.classification.prompts import DEFAULT_TEXT_PROMPT, DEFAULT_VISION_PROMPT
from scan_organizer.models.enums import PlacementPolicy


class OllamaSettings(BaseSettings):
    """Local inference service (Ollama) connection and decoding options."""

    model_config = SettingsConfigDict(env_prefix="SCAN_OLLAMA_", env_file=".env", extra="ignore", frozen=True)

    base_url: str = Field(default="http://localhost:11434", description="Ollama API base URL")
    vision_model: str = Field(default="granite3.2-vision:2b", description="Model for the image-description stage")
    text_model: str = Field(default="granite3.3:2b", description="Model for the structured-extraction stage")
    timeout: int = Field(default=180, description="Read timeout in seconds (large images take minutes)")
    connect_timeout: int = Field(default=10, description="Connect timeout in seconds")

    vision_temperature: float = 0.3
    vision_top_p: float = 0.9
    vision_max_tokens: int = 300
    text_temperature: float = 0.1
    text_max_tokens: int = 300

    vision_excerpt_chars: int = Field(default=800, description="OCR characters embedded in the vision prompt")
    text_excerpt_chars: int = Field(default=1500, description="OCR characters embedded in the text prompt")


class PromptSettings(BaseSettings):
    """Prompt templates. Placeholders use the {KEY} form."""

    model_config = SettingsConfigDict(env_prefix="SCAN_PROMPT_", env_file=".env", extra="ignore", frozen=True)

    vision_prompt: str = Field(default=DEFAULT_VISION_PROMPT)
    text_prompt: str = Field(default=DEFAULT_TEXT_PROMPT)


class FilenameSettings(BaseSettings):
    """Rules for building the new file name."""

    model_config = SettingsConfigDict(env_prefix="SCAN_FILENAME_", env_file=".env", extra="ignore", frozen=True)

    include_date: bool = True
    date_format: str = Field(default="YYYY-MM-DD", description="Placeholders: YYYY, MM, DD")
    part_separator: str = "-"
    internal_separator: str = "-"
    include_components: bool = True
    component_min_confidence: float = 0.6
    max_components: int = 3
    component_scan_limit: int = 5
    title_max_length: int = 50
    component_max_length: int = 30

    @field_validator("part_separator", "internal_separator")
    @classmethod
    def validate_separator(cls, v: str) -> str:
        """Separators must be non-empty and must not contain path separators."""
        if not v or "/" in v or "\\" in v:
            msg = f"Invalid filename separator: {v!r}"
            raise ValueError(msg)
        return v


class OrganizerSettings(BaseSettings):
    """Where processed files are placed."""

    model_config = SettingsConfigDict(env_prefix="SCAN_ORGANIZER_", env_file=".env", extra="ignore", frozen=True)

    placement: PlacementPolicy = Field(default=PlacementPolicy.SAME_FOLDER)
    archive_dir: Path = Field(default=Path.home() / "Documents" / "Scans", description="Root for the archive policy")
    delete_original: bool = True


class OcrSettings(BaseSettings):
    """On-device OCR and page rendering."""

    model_config = SettingsConfigDict(env_prefix="SCAN_OCR_", env_file=".env", extra="ignore", frozen=True)

    languages: str = Field(default="deu+eng", description="Tesseract language codes")
    max_pages: int = Field(default=10, description="Pages considered for OCR and OCR comparison")
    ocr_max_dimension: int = 2400
    preview_scale: float = Field(default=1.5, description="Render scale of the page sent to the vision model")
    vision_max_long_side: int = 1600
    rebuild_max_dimension: int = 2400


class QueueSettings(BaseSettings):
    """Processing queue timing."""

    model_config = SettingsConfigDict(env_prefix="SCAN_QUEUE_", env_file=".env", extra="ignore", frozen=True)

    inter_item_delay: float = Field(default=0.5, description="Pause between two items, in seconds")
    idle_timeout: float = Field(default=1.0, description="Max wait for the work-available signal, in seconds")


class Settings(BaseSettings):
    """Root settings composing all sub-settings.

    Usage:
        settings = Settings()
        settings.ollama.vision_model
        settings.filename.part_separator
        settings = settings.with_updates(filename=FilenameSettings(include_date=False))
    """

    model_config = SettingsConfigDict(env_prefix="SCAN_", env_file=".env", extra="ignore", frozen=True)

    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    ollama: OllamaSettings = Field(default_factory=OllamaSettings)
    prompts: PromptSettings = Field(default_factory=PromptSettings)
    filename: FilenameSettings = Field(default_factory=FilenameSettings)
    organizer: OrganizerSettings = Field(default_factory=OrganizerSettings)
    ocr: OcrSettings = Field(default_factory=OcrSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            msg = f"Invalid log level: {v}. Must be one of {valid}"
            raise ValueError(msg)
        return upper

    def with_updates(self, **groups: BaseSettings | str) -> Settings:
        """Return a new, validated snapshot with the given groups or fields replaced."""
        unknown = set(groups) - set(type(self).model_fields)
        if unknown:
            msg = f"Unknown settings fields: {sorted(unknown)}"
            raise ValueError(msg)
        return type(self).model_validate({**self.model_dump(), **groups})


# Module-level snapshot, the default for components built without explicit settings.
settings = Settings()


def reload_settings() -> Settings:
    """Re-read the environment and replace the module-level snapshot.

    Components built earlier keep the snapshot they were given.
    """
    global settings
    settings = Settings()
    return settings

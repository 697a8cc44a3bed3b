"""Request bodies for the workbench API."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FixStreamRequest(BaseModel):
    """Grammar correction request. Options use the browser's camelCase keys."""

    text: Any = None
    model: str | None = None
    options: dict[str, Any] | None = None


class TranslateStreamRequest(BaseModel):
    """Translation request; chunking lives under options.chunking."""

    text: Any = None
    model: str | None = None
    options: dict[str, Any] | None = None


class ConfigUpdateRequest(BaseModel):
    """Partial update of the model host configuration."""

    model_config = ConfigDict(extra="ignore")

    OLLAMA_HOST: str | None = None
    OLLAMA_PORT: int | str | None = None
    OLLAMA_AUTOSTART: bool | str | int | None = None
    OLLAMA_START_TIMEOUT_MS: int | str | None = None
    OLLAMA_RUN_TIMEOUT_MS: int | str | None = None
    OLLAMA_CONCURRENCY: int | str | None = None
    persist: bool | str | int | None = Field(default=False)

    def changes(self) -> dict[str, Any]:
        """Config keys that were actually supplied."""
        return self.model_dump(exclude_unset=True, exclude={"persist"})

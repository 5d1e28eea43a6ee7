"""Configuration loader: optional config.yaml overlaid by environment variables.

Every setting has an environment variable; config.yaml only supplies
defaults for a deployment. Settings are resolved once and injected into the
components that need them, nothing below this module reads os.environ.
"""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Literal
from urllib.parse import urljoin

import yaml
from pydantic import BaseModel, field_validator, model_validator

from research_agent.schemas import ModelDescriptor

logger = logging.getLogger(__name__)


class QuirkProfile(str, Enum):
    """How the active model provider deviates from plain tool calling.

    TOOL_LIMITED  Ollama-style models: no native tool-result messages.
    UI_DEFERRED   Anthropic-style models: the answer section is reserved for
                  the synthesis that follows a tool result.
    """

    STANDARD = "standard"
    TOOL_LIMITED = "tool_limited"
    UI_DEFERRED = "ui_deferred"


_SEARCH_API_ALIASES = {"searchxng": "searxng"}

# setting name -> environment variable(s), first match wins
_ENV_VARS: dict[str, tuple[str, ...]] = {
    "search_api": ("SEARCH_API",),
    "tavily_api_key": ("TAVILY_API_KEY",),
    "exa_api_key": ("EXA_API_KEY",),
    "searxng_api_url": ("SEARXNG_API_URL", "SEARCHXNG_API_URL"),
    "searxng_timeout": ("SEARXNG_TIMEOUT",),
    "ollama_base_url": ("OLLAMA_BASE_URL",),
    "ollama_model": ("OLLAMA_MODEL",),
    "ollama_sub_model": ("OLLAMA_SUB_MODEL",),
    "anthropic_api_key": ("ANTHROPIC_API_KEY",),
    "anthropic_model": ("ANTHROPIC_MODEL",),
    "openai_api_key": ("OPENAI_API_KEY",),
    "openai_api_base": ("OPENAI_API_BASE",),
    "openai_model": ("OPENAI_API_MODEL", "OPENAI_MODEL"),
    "base_url": ("BASE_URL",),
    "max_tokens": ("MAX_TOKENS",),
    "max_iterations": ("MAX_ITERATIONS",),
}

_SECRET_FIELDS = {"tavily_api_key", "exa_api_key", "anthropic_api_key", "openai_api_key"}


class Settings(BaseModel):
    """Process-wide settings."""

    # Search
    search_api: Literal["tavily", "exa", "searxng"] = "tavily"
    tavily_api_key: str | None = None
    exa_api_key: str | None = None
    searxng_api_url: str | None = None
    searxng_timeout: float = 30.0

    # Model providers
    ollama_base_url: str | None = None
    ollama_model: str | None = None
    ollama_sub_model: str | None = None
    anthropic_api_key: str | None = None
    anthropic_model: str = "claude-3-5-sonnet-20240620"
    openai_api_key: str | None = None
    openai_api_base: str | None = None
    openai_model: str = "gpt-4o"

    # Relative backend URLs are resolved against this
    base_url: str | None = None

    max_tokens: int = 2500
    max_iterations: int = 3

    allowed_origins: list[str] = ["*"]

    @field_validator("search_api", mode="before")
    @classmethod
    def normalize_search_api(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            return _SEARCH_API_ALIASES.get(v, v) or "tavily"
        return v

    @field_validator("max_tokens", "max_iterations")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @model_validator(mode="after")
    def resolve_relative_urls(self) -> Settings:
        for name in ("searxng_api_url", "ollama_base_url", "openai_api_base"):
            value = getattr(self, name)
            if not value or value.startswith(("http://", "https://")):
                continue
            if not self.base_url:
                raise ValueError(f"{name} '{value}' is relative but BASE_URL is not set")
            setattr(self, name, urljoin(self.base_url, value))
        return self

    @property
    def quirk_profile(self) -> QuirkProfile:
        """Resolve the provider quirk profile. Ollama wins over Anthropic."""
        if self.ollama_model and self.ollama_base_url:
            return QuirkProfile.TOOL_LIMITED
        if self.anthropic_api_key:
            return QuirkProfile.UI_DEFERRED
        return QuirkProfile.STANDARD

    def default_model(self) -> ModelDescriptor:
        """Model descriptor implied by the environment (Ollama > Anthropic > OpenAI)."""
        if self.ollama_model and self.ollama_base_url:
            return ModelDescriptor(
                id=self.ollama_model,
                name=self.ollama_model,
                provider="Ollama",
                provider_id="ollama",
                tool_call_type="manual",
                tool_call_model=self.ollama_sub_model,
            )
        if self.anthropic_api_key:
            return ModelDescriptor(
                id=self.anthropic_model,
                name=self.anthropic_model,
                provider="Anthropic",
                provider_id="anthropic",
            )
        return ModelDescriptor(
            id=self.openai_model,
            name=self.openai_model,
            provider="OpenAI",
            provider_id="openai",
        )

    def redacted(self) -> dict[str, Any]:
        """model_dump() with credentials masked, for the /config endpoint."""
        data = self.model_dump()
        for name in _SECRET_FIELDS:
            if data.get(name):
                data[name] = "***"
        return data


def _env_overrides(environ: dict[str, str]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for field, names in _ENV_VARS.items():
        for name in names:
            value = environ.get(name)
            if value:
                overrides[field] = value
                break
    return overrides


def build_settings(
    file_values: dict[str, Any] | None = None,
    environ: dict[str, str] | None = None,
) -> Settings:
    """Merge file values with environment overrides and validate."""
    merged = dict(file_values or {})
    merged.update(_env_overrides(dict(os.environ) if environ is None else environ))
    return Settings(**merged)


# ---------------------------------------------------------------------------
# Module-level settings cache
# ---------------------------------------------------------------------------

_settings: Settings | None = None
_settings_path: str = "config.yaml"


def load_settings(path: str = "config.yaml") -> Settings:
    """Read config.yaml if present, overlay the environment, validate, cache."""
    global _settings, _settings_path
    _settings_path = path

    config_file = Path(path)
    file_values: dict[str, Any] = {}
    if config_file.exists():
        file_values = yaml.safe_load(config_file.read_text()) or {}
        if not isinstance(file_values, dict):
            raise ValueError(f"Config file {config_file.resolve()} must contain a mapping")
    else:
        logger.info(f"No config file at {config_file.resolve()}, using environment only")

    _settings = build_settings(file_values)
    logger.info(
        f"Loaded settings: search_api={_settings.search_api}, "
        f"profile={_settings.quirk_profile.value}"
    )
    return _settings


def get_settings() -> Settings:
    """Return cached settings. Raises if not yet loaded."""
    if _settings is None:
        raise RuntimeError("Settings not loaded, call load_settings() first")
    return _settings


def reload_settings() -> Settings:
    """Re-read config and environment. Called by the /reload endpoint."""
    logger.info(f"Reloading settings from {_settings_path}")
    return load_settings(_settings_path)

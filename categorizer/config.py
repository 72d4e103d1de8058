"""Application configuration.

Everything tunable comes from environment variables and is exposed as module
constants. Credentials for the two outbound services have no defaults; they
are resolved through ``get_config_variable`` when the clients are built so a
missing value fails application startup instead of the first job.
"""
from __future__ import annotations

import os


class ConfigurationError(RuntimeError):
	"""Raised when a required environment variable is not set."""


def get_config_variable(name: str, default: str | None = None) -> str:
	"""Return the environment value for ``name`` or ``default``.

	Raises ConfigurationError when the variable is unset (or blank) and no
	default was given.
	"""
	value = os.getenv(name)
	if value is not None and value.strip():
		return value
	if default is None:
		raise ConfigurationError(f"Environment variable '{name}' is required but not set")
	return default


def _as_bool(raw: str) -> bool:
	return raw.strip().lower() in {"1", "true", "yes", "on"}


# ------------------------------- Server ----------------------------------- #
PORT: int = int(os.getenv("PORT", "3000"))
ENABLE_UI: bool = _as_bool(os.getenv("ENABLE_UI", "false"))
CORS_ORIGINS: list[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE: str | None = os.getenv("LOG_FILE") or None

# ------------------------------- Firefly III ------------------------------ #
# FIREFLY_URL and FIREFLY_PERSONAL_TOKEN are required; see get_config_variable.
FIREFLY_TAG: str = os.getenv("FIREFLY_TAG", "AI categorized")
FIREFLY_CATEGORIES_PAGE_LIMIT: int = int(os.getenv("FIREFLY_CATEGORIES_PAGE_LIMIT", "50"))

# -------------------------------- OpenAI ---------------------------------- #
# OPENAI_API_KEY is required; see get_config_variable.
OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")

# Total timeout for a single outbound HTTP request
HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))

# --------------------------------- Queue ---------------------------------- #
QUEUE_SETTINGS: dict[str, float | bool] = {
	"timeout_seconds": float(os.getenv("QUEUE_TIMEOUT_SECONDS", "30")),
	"autostart": True,
}

__all__ = [
	"ConfigurationError",
	"get_config_variable",
	"PORT",
	"ENABLE_UI",
	"CORS_ORIGINS",
	"LOG_LEVEL",
	"LOG_FILE",
	"FIREFLY_TAG",
	"FIREFLY_CATEGORIES_PAGE_LIMIT",
	"OPENAI_MODEL",
	"OPENAI_BASE_URL",
	"HTTP_TIMEOUT_SECONDS",
	"QUEUE_SETTINGS",
]

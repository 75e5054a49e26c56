"""Runtime settings for the n8n workflow validation / diff engine.

Automatically reads from environment variables (or a .env file).
No explicit from_env() call needed — just instantiate: AgentSettings()

Environment variables:
  N8N_CATALOG_PATH         — node-type catalog snapshot (default: bundled snapshot)
  N8N_CATALOG_META_PATH    — fingerprint file for the snapshot (default: bundled meta)
  N8N_AGENT_LOG_LEVEL      — Python log level for entry points (default: WARNING)
  N8N_DIFF_MAX_OPERATIONS  — max operations per diff batch (default: 5)
  N8N_VALIDATION_PROFILE   — minimal | runtime | ai-friendly | strict (default: runtime)
  N8N_NODE_NAME_MAX_LENGTH — node names longer than this produce a warning (default: 100)
  N8N_AUTOFIX_MAX_FIXES    — cap on fixes returned by one autofix call (default: 50)
  N8N_AUTOFIX_CONFIDENCE   — default confidence threshold: high | medium | low (default: medium)
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_KNOWLEDGE_DIR = Path(__file__).parent / "knowledge"
DEFAULT_CATALOG_PATH = _KNOWLEDGE_DIR / "n8n_nodes.snapshot.json"
DEFAULT_CATALOG_META_PATH = _KNOWLEDGE_DIR / "n8n_nodes.meta.json"

_PROFILES = ("minimal", "runtime", "ai-friendly", "strict")
_CONFIDENCE_TIERS = ("high", "medium", "low")


class AgentSettings(BaseSettings):
    """Settings shared by the validator, diff engine, auto-fixer and entry points."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    catalog_path: Path = Field(default=DEFAULT_CATALOG_PATH, validation_alias="N8N_CATALOG_PATH")
    catalog_meta_path: Path = Field(
        default=DEFAULT_CATALOG_META_PATH,
        validation_alias="N8N_CATALOG_META_PATH",
    )
    log_level: str = Field(default="WARNING", validation_alias="N8N_AGENT_LOG_LEVEL")
    max_operations: int = Field(default=5, validation_alias="N8N_DIFF_MAX_OPERATIONS")
    validation_profile: str = Field(default="runtime", validation_alias="N8N_VALIDATION_PROFILE")
    node_name_max_length: int = Field(default=100, validation_alias="N8N_NODE_NAME_MAX_LENGTH")
    autofix_max_fixes: int = Field(default=50, validation_alias="N8N_AUTOFIX_MAX_FIXES")
    autofix_confidence: str = Field(default="medium", validation_alias="N8N_AUTOFIX_CONFIDENCE")

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_level(cls, v: object) -> str:
        return str(v or "WARNING").upper()

    @field_validator("validation_profile", mode="before")
    @classmethod
    def known_profile(cls, v: object) -> str:
        profile = str(v or "runtime").lower()
        if profile not in _PROFILES:
            raise ValueError(f"Unknown validation profile {profile!r}. Valid: {list(_PROFILES)}")
        return profile

    @field_validator("autofix_confidence", mode="before")
    @classmethod
    def known_confidence(cls, v: object) -> str:
        tier = str(v or "medium").lower()
        if tier not in _CONFIDENCE_TIERS:
            raise ValueError(f"Unknown confidence tier {tier!r}. Valid: {list(_CONFIDENCE_TIERS)}")
        return tier

    @field_validator("max_operations", "node_name_max_length", "autofix_max_fixes")
    @classmethod
    def at_least_one(cls, v: int) -> int:
        return max(1, v)

    # Keep from_env() as a convenience alias for call-sites that use it explicitly.
    @classmethod
    def from_env(cls) -> AgentSettings:
        return cls()

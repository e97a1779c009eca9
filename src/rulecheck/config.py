"""Nested pydantic-settings configuration for the validation engine.

Each group reads its own ``RULECHECK_<GROUP>_*`` env vars::

    export RULECHECK_ENGINE_MAX_WORKERS=8
    export RULECHECK_RULES_RULES_PATH=./rules.yaml
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class EngineConfig(BaseSettings):
    """Execution settings.

    Env vars use ``RULECHECK_ENGINE_`` prefix.
    """

    model_config = {"env_prefix": "RULECHECK_ENGINE_"}

    max_workers: int = Field(default=4, ge=1)
    retrieval_timeout_seconds: float | None = Field(default=30.0, gt=0.0)
    retain_history: bool = False
    history_limit: int = Field(default=10, ge=1)


class RulesConfig(BaseSettings):
    """Where rule definitions are loaded from.

    Env vars use ``RULECHECK_RULES_`` prefix.
    """

    model_config = {"env_prefix": "RULECHECK_RULES_"}

    rules_path: Path | None = None


class ObservabilityConfig(BaseSettings):
    """Logging configuration.

    Env vars use ``RULECHECK_OBSERVABILITY_`` prefix.
    """

    model_config = {"env_prefix": "RULECHECK_OBSERVABILITY_"}

    log_level: str = "INFO"
    log_format: Literal["auto", "json", "console"] = "auto"


class AppSettings(BaseSettings):
    """Top-level settings aggregating all sub-configs."""

    engine: EngineConfig = EngineConfig()
    rules: RulesConfig = RulesConfig()
    observability: ObservabilityConfig = ObservabilityConfig()

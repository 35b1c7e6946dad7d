"""
Central configuration for rollupnet.

This module provides a single, typed configuration object that reads from
environment variables (12-factor style) using Pydantic BaseSettings.

Usage:

    from rollupnet.core.settings import get_settings

    settings = get_settings()
    depth = settings.tree.depth

Tree shape is fixed for the lifetime of the process; the accumulator takes
an ``AccumulatorConfig`` built from these values once at start-up.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TreeSettings(BaseSettings):
    depth: int = Field(
        default=4,
        validation_alias="ROLLUPNET_TREE_DEPTH",
        description="Depth D of the account tree (2^D leaves).",
    )
    batch_exponent: int = Field(
        default=2,
        validation_alias="ROLLUPNET_BATCH_EXPONENT",
        description="Batch size exponent k (2^k deposits per batch).",
    )

    model_config = SettingsConfigDict(populate_by_name=True)

    @field_validator("depth")
    @classmethod
    def _validate_depth(cls, v: int) -> int:
        if v < 1 or v > 32:
            raise ValueError("ROLLUPNET_TREE_DEPTH must be between 1 and 32")
        return v

    @model_validator(mode="after")
    def _validate_exponent(self) -> "TreeSettings":
        if self.batch_exponent < 0 or self.batch_exponent >= self.depth:
            raise ValueError(
                "ROLLUPNET_BATCH_EXPONENT must satisfy 0 <= k < ROLLUPNET_TREE_DEPTH"
            )
        return self


class LedgerSettings(BaseSettings):
    url: Optional[str] = Field(
        default=None,
        validation_alias="ROLLUPNET_LEDGER_URL",
        description="Base URL of a remote ledger; in-process ledger when unset.",
    )
    timeout: float = Field(
        default=10.0,
        validation_alias="ROLLUPNET_LEDGER_TIMEOUT",
        description="HTTP timeout in seconds for ledger calls.",
    )
    operator_key_file: Optional[str] = Field(
        default=None,
        validation_alias="ROLLUPNET_OPERATOR_KEY_FILE",
        description="PEM-encoded Ed25519 key used to sign commit requests.",
    )

    model_config = SettingsConfigDict(populate_by_name=True)


class RuntimeSettings(BaseSettings):
    log_level: str = Field(
        default="INFO",
        validation_alias="ROLLUPNET_LOG_LEVEL",
        description="Root log level (DEBUG/INFO/WARNING/ERROR).",
    )
    host: str = Field(
        default="127.0.0.1",
        validation_alias="ROLLUPNET_HTTP_HOST",
        description="Bind host for the ledger HTTP server.",
    )
    port: int = Field(
        default=8545,
        validation_alias="ROLLUPNET_HTTP_PORT",
        description="Bind port for the ledger HTTP server.",
    )

    model_config = SettingsConfigDict(populate_by_name=True)


class RollupSettings(BaseSettings):
    """
    Root configuration object for rollupnet.

    Aggregates:
      - Tree
      - Ledger
      - Runtime
    """

    tree: TreeSettings = Field(default_factory=TreeSettings)
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)


@lru_cache(maxsize=1)
def get_settings() -> RollupSettings:
    """
    Cached accessor for RollupSettings.

    Usage:
        from rollupnet.core.settings import get_settings
        settings = get_settings()
    """
    return RollupSettings()

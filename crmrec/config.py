"""Runtime settings for CRMRec.

Defaults can be overridden through ``CRMREC_*`` environment variables.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

ENV_PREFIX = "CRMREC_"

DEFAULT_DATA_DIR = "data"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LIMIT = 10


def _as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    """Application settings.

    Attributes:
        data_dir: Directory holding ``products.csv``, ``orders.csv`` and
            optionally ``customers.csv``.
        log_level: Root logging level.
        default_limit: Number of recommendations returned when the caller
            does not ask for a specific amount.
        cache_matrix: Reuse the co-occurrence matrix while the order
            snapshot is unchanged.
    """

    data_dir: str = DEFAULT_DATA_DIR
    log_level: str = DEFAULT_LOG_LEVEL
    default_limit: int = DEFAULT_LIMIT
    cache_matrix: bool = True

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables."""
        env = os.environ if environ is None else environ
        settings = cls()

        if f"{ENV_PREFIX}DATA_DIR" in env:
            settings.data_dir = env[f"{ENV_PREFIX}DATA_DIR"]
        if f"{ENV_PREFIX}LOG_LEVEL" in env:
            settings.log_level = env[f"{ENV_PREFIX}LOG_LEVEL"].upper()
        if f"{ENV_PREFIX}DEFAULT_LIMIT" in env:
            limit = int(env[f"{ENV_PREFIX}DEFAULT_LIMIT"])
            if limit <= 0:
                raise ValueError(f"{ENV_PREFIX}DEFAULT_LIMIT must be positive, got {limit}")
            settings.default_limit = limit
        if f"{ENV_PREFIX}CACHE_MATRIX" in env:
            settings.cache_matrix = _as_bool(env[f"{ENV_PREFIX}CACHE_MATRIX"])

        return settings

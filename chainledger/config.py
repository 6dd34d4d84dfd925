"""Engine settings for chainledger.

Defaults are tuned for the public block explorers the source profiles target.
Every value can be overridden from the environment with a ``CHAINLEDGER_``
prefix (``CHAINLEDGER_EXPORT_TIMEOUT=120``) or directly by the CLI.
"""

import os
from decimal import Decimal

from pydantic import BaseModel, Field

ENV_PREFIX = "CHAINLEDGER_"


class EngineSettings(BaseModel):
    # Derived-state rewards
    reward_epsilon: Decimal = Decimal("0.0001")
    max_reward_rate: Decimal = Decimal("0.005")  # per interval, relative to previous staked balance

    # Ambiguity detection
    outlier_sigma: Decimal = Decimal("3")
    outlier_min_samples: int = Field(default=5, ge=2)
    known_symbols: frozenset[str] | None = None

    # Fetch contract
    export_timeout: float = 180.0
    export_grace: float = Field(default=10.0, ge=0)  # wait for in-flight categories to hand back partial pages
    max_attempts: int = Field(default=3, ge=1)
    initial_backoff: float = 1.0
    max_backoff: float = 8.0
    max_rate_limit_retries: int = Field(default=10, ge=1)
    max_pages: int = Field(default=500, ge=1)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides) -> "EngineSettings":
        """Build settings from ``CHAINLEDGER_*`` variables, then apply overrides."""
        env = os.environ if environ is None else environ
        values: dict = {}
        for name in cls.model_fields:
            raw = env.get(ENV_PREFIX + name.upper())
            if raw is None or raw == "":
                continue
            if name == "known_symbols":
                values[name] = frozenset(s.strip().upper() for s in raw.split(",") if s.strip())
            else:
                values[name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(values)

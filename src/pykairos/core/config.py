"""
Runtime configuration.

Design Pattern: Strategy Pattern
RuntimeConfig carries the few knobs the drivers need, so the Reactor,
Task.run() and Executor share one policy instead of scattering constants.

Design Rationale:
- Safe default: lenient executor, 1ms forward-progress timeout
- Named presets for the common cases
- Environment override for deployments (KAIROS_MIN_TIMEOUT, KAIROS_STRICT)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, cast

__all__ = ["RuntimeConfig"]

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class RuntimeConfig:
    """
    Scheduling policy shared by every driver of a Reactor.

    Examples:
        # Defaults
        config = RuntimeConfig.DEFAULT

        # Abort the whole executor on the first failed task
        config = RuntimeConfig.STRICT

        # Custom
        config = RuntimeConfig(min_timeout=0.005, strict=True)

        # From environment
        # $ export KAIROS_STRICT=1
        config = RuntimeConfig.from_env()
    """

    min_timeout: float = 0.001
    """Poll timeout (seconds) used when a deadline has already passed.

    Must be nonzero: it guarantees forward progress without busy-spinning
    the selector.
    """

    strict: bool = False
    """Executor treats a task's failure payload as fatal to the whole run."""

    if TYPE_CHECKING:
        DEFAULT: RuntimeConfig
        STRICT: RuntimeConfig
    else:
        DEFAULT = cast("RuntimeConfig", None)
        STRICT = cast("RuntimeConfig", None)

    def __post_init__(self) -> None:
        if self.min_timeout <= 0:
            raise ValueError(f"min_timeout must be positive, got {self.min_timeout}")

    def with_min_timeout(self, seconds: float) -> RuntimeConfig:
        return replace(self, min_timeout=seconds)

    def with_strict(self, strict: bool = True) -> RuntimeConfig:
        return replace(self, strict=strict)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> RuntimeConfig:
        """
        Build a config from KAIROS_* environment variables.

        Unset variables keep the defaults.

        Args:
            environ: Mapping to read instead of os.environ (for tests)

        Raises:
            ValueError: If KAIROS_MIN_TIMEOUT is not a positive number
        """
        env = os.environ if environ is None else environ
        config = cls()

        min_timeout = env.get("KAIROS_MIN_TIMEOUT")
        if min_timeout:
            try:
                config = config.with_min_timeout(float(min_timeout))
            except ValueError as e:
                raise ValueError(f"Invalid KAIROS_MIN_TIMEOUT={min_timeout!r}: {e}") from e

        strict = env.get("KAIROS_STRICT")
        if strict:
            config = config.with_strict(strict.strip().lower() in _TRUTHY)

        return config


RuntimeConfig.DEFAULT = RuntimeConfig()
RuntimeConfig.STRICT = RuntimeConfig(strict=True)

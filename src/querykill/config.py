"""Run configuration — env vars, defaults. Immutable once built."""

from __future__ import annotations

import dataclasses
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from querykill.rules.models import RuleSet


def _default_sentinel() -> Path:
    return Path(tempfile.gettempdir()) / "querykill-sentinel"


@dataclass(frozen=True)
class QueryKillConfig:
    """Everything a run needs; never mutated after startup."""

    interval: float = 30.0
    run_time: float | None = None
    rule_set: RuleSet = field(default_factory=RuleSet)
    terminate: bool = False
    terminate_query: bool = False
    execute_command: str | None = None
    print_matches: bool = False
    verbose: bool = False
    daemonize: bool = False
    pid_file: Path | None = None
    log_file: Path | None = None
    sentinel: Path = field(default_factory=_default_sentinel)
    drain_timeout: float = 5.0
    dsn: str = ""

    def __post_init__(self) -> None:
        if self.interval <= 0:
            raise ValueError(f"interval must be positive, got {self.interval}")
        if self.run_time is not None and self.run_time < 0:
            raise ValueError(f"run_time must not be negative, got {self.run_time}")
        if self.drain_timeout < 0:
            raise ValueError(f"drain_timeout must not be negative, got {self.drain_timeout}")

    @property
    def has_action(self) -> bool:
        return bool(
            self.terminate
            or self.terminate_query
            or self.execute_command
            or self.print_matches
        )

    @classmethod
    def load(cls, **overrides: object) -> QueryKillConfig:
        """Build a config from environment variables, then explicit overrides.

        Overrides whose value is None are ignored so CLI options left unset
        fall through to the environment and defaults.
        """
        values: dict[str, object] = {}

        env_interval = os.environ.get("QUERYKILL_INTERVAL")
        if env_interval:
            values["interval"] = float(env_interval)

        env_sentinel = os.environ.get("QUERYKILL_SENTINEL")
        if env_sentinel:
            values["sentinel"] = Path(env_sentinel)

        env_dsn = os.environ.get("QUERYKILL_DSN")
        if env_dsn:
            values["dsn"] = env_dsn

        known = {f.name for f in dataclasses.fields(cls)}
        for key, value in overrides.items():
            if key not in known:
                raise TypeError(f"Unknown config option: {key}")
            if value is not None:
                values[key] = value

        return cls(**values)

# Taskboard: configuration
# Override the simulated backend, seed data and logging via a YAML file.

import logging
import os
import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

from .backend import SimulatedBackend
from .errors import ConfigError

CONFIG_ENV = "TASKBOARD_CONFIG"


@dataclass
class Config:
    """Runtime configuration for one application session."""

    # Simulated remote service
    latency_ms: int = 0
    failure_rate: float = 0.0
    random_seed: Optional[int] = None

    # Sample workspace loaded at startup (None = start empty)
    seed_file: Optional[str] = None

    # Activity trail (None = in memory only)
    activity_log: Optional[str] = None

    log_level: str = "INFO"

    def validate(self):
        """Raise ConfigError for values the backend or logging would reject."""
        if not isinstance(self.latency_ms, int) or self.latency_ms < 0:
            raise ConfigError(f"latency_ms must be a non-negative integer, got: {self.latency_ms!r}")
        try:
            rate = float(self.failure_rate)
        except (TypeError, ValueError):
            raise ConfigError(f"failure_rate must be a number, got: {self.failure_rate!r}")
        if not 0.0 <= rate <= 1.0:
            raise ConfigError(f"failure_rate must be within [0, 1], got: {rate}")
        self.failure_rate = rate
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ConfigError(f"Unknown log_level: {self.log_level!r}")

    def resolve_paths(self, base: Optional[Path] = None):
        """Expand ~ and make relative paths relative to the config file."""
        base = base or Path.cwd()
        for name in ("seed_file", "activity_log"):
            value = getattr(self, name)
            if value:
                p = Path(value).expanduser()
                if not p.is_absolute():
                    p = base / p
                setattr(self, name, str(p))

    def build_backend(self) -> SimulatedBackend:
        return SimulatedBackend(
            latency=self.latency_ms / 1000,
            failure_rate=self.failure_rate,
            seed=self.random_seed,
        )

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """
        Load config from YAML, falling back to defaults.

        The path comes from the argument, else $TASKBOARD_CONFIG. A missing
        file gives defaults; a malformed one raises ConfigError.
        """
        path = path or os.environ.get(CONFIG_ENV)
        if not path:
            cfg = cls()
            cfg.validate()
            return cfg

        cfg_path = Path(path).expanduser()
        if not cfg_path.exists():
            cfg = cls()
            cfg.validate()
            return cfg

        try:
            with open(cfg_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse {cfg_path}: {e}")
        if not isinstance(data, dict):
            raise ConfigError(f"{cfg_path} must contain a mapping, got {type(data).__name__}")

        known = {f.name for f in fields(cls)}
        cfg = cls(**{k: v for k, v in data.items() if k in known})
        cfg.validate()
        cfg.resolve_paths(cfg_path.parent)
        return cfg


def configure_logging(level: str = "INFO", name: str = "taskboard"):
    """Stdout logging for entry points."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=f"%(asctime)s [{name}] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

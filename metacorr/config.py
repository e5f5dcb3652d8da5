"""Run configuration.

Settings come from an optional TOML file (table ``[p2]``) and are overridden
by command line flags that were actually given.
"""
from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Optional

from Bio.Data import CodonTable

from metacorr.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class P2Config:
    """Thresholds and sizes for one correlation run."""
    max_lag: int = 100
    workers: int = 0
    min_base_quality: int = 13
    min_mapq: int = 30
    max_mapq: int = 50
    genetic_code: int = 11
    min_pairs: int = 0
    progress: bool = False
    log_file: Optional[str] = None

    def validate(self) -> "P2Config":
        """Raise ConfigError on inconsistent settings, else return self."""
        for name in _INT_FIELDS:
            value = getattr(self, name)
            # bool is an int subclass, but `max_lag = true` is a mistake
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigError(f"{name} must be an integer, got {value!r}")
        if not isinstance(self.progress, bool):
            raise ConfigError(f"progress must be true or false, got {self.progress!r}")
        if self.log_file is not None and not isinstance(self.log_file, str):
            raise ConfigError(f"log_file must be a path string, got {self.log_file!r}")
        if self.max_lag < 0:
            raise ConfigError(f"max_lag must be >= 0, got {self.max_lag}")
        if self.workers < 0:
            raise ConfigError(f"workers must be >= 0, got {self.workers}")
        if self.min_mapq > self.max_mapq:
            raise ConfigError(
                f"min_mapq ({self.min_mapq}) is greater than max_mapq ({self.max_mapq})"
            )
        if self.min_pairs < 0:
            raise ConfigError(f"min_pairs must be >= 0, got {self.min_pairs}")
        if self.genetic_code not in CodonTable.unambiguous_dna_by_id:
            raise ConfigError(f"Unknown NCBI genetic code: {self.genetic_code}")
        return self

    def resolved_workers(self) -> int:
        """Number of worker processes, with 0 meaning one per CPU."""
        if self.workers:
            return self.workers
        return os.cpu_count() or 1


_INT_FIELDS = ("max_lag", "workers", "min_base_quality", "min_mapq", "max_mapq",
               "genetic_code", "min_pairs")


def _load_toml(path: Optional[str]) -> Dict[str, Any]:
    if not path:
        return {}
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Cannot parse {path}: {e}") from e
    return data.get("p2") or {}


def load_config(path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> P2Config:
    """Build a validated P2Config from a TOML file plus CLI overrides."""
    conf = _load_toml(path)
    known = {f.name for f in fields(P2Config)}
    unknown = sorted(set(conf) - known)
    if unknown:
        raise ConfigError(f"Unknown [p2] keys in {path}: {', '.join(unknown)}")

    # CLI overrides
    for k, v in (overrides or {}).items():
        if v is None:
            continue
        if k not in known:
            raise ConfigError(f"Unknown setting: {k}")
        conf[k] = v

    try:
        config = replace(P2Config(), **conf)
    except TypeError as e:
        raise ConfigError(str(e)) from e
    logger.debug(f"Configuration: {asdict(config)}")
    return config.validate()

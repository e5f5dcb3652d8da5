"""Per-batch lag covariance and its aggregation across reference sequences."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

import numpy as np

from metacorr.codons import SubstitutionProfile
from metacorr.stats import LagCovariance, MeanVariance

logger = logging.getLogger(__name__)


def calc_lag_covariance(profiles: Iterable[SubstitutionProfile], max_lag: int) -> LagCovariance:
    """Accumulate covariance of indicator pairs by their reference distance.

    Every pair of scored sites within a profile, a site with itself included,
    contributes at lag = distance between them when that is below max_lag.
    """
    covs = LagCovariance(max_lag)
    for profile in profiles:
        scored = [(p, v) for p, v in zip(profile.positions, profile.values) if v is not None]
        if not scored:
            continue
        positions = np.fromiter((p for p, _ in scored), dtype=np.int64, count=len(scored))
        values = np.fromiter((v for _, v in scored), dtype=np.float64, count=len(scored))
        for k in range(positions.size):
            # positions increase, so the lags below max_lag form a prefix
            stop = k + np.searchsorted(positions[k:] - positions[k], max_lag)
            lags = positions[k:stop] - positions[k]
            covs.increment(lags, values[k], values[k:stop])
    return covs


@dataclass
class BatchResult:
    """Covariance per lag for one reference, plus read diagnostics."""
    reference: str
    covariances: np.ndarray
    counts: np.ndarray
    reads_used: int = 0
    reads_discarded: int = 0
    pairs: int = 0

    @classmethod
    def from_covariance(cls, reference: str, covs: LagCovariance, **diagnostics) -> "BatchResult":
        return cls(reference, covs.result(), covs.n.copy(), **diagnostics)


@dataclass
class LagStatistics:
    """Final per-lag mean/variance of batch covariances."""
    mean: np.ndarray
    variance: np.ndarray
    n: np.ndarray
    batches: int = 0
    reads_used: int = 0
    reads_discarded: int = 0
    pairs: int = 0

    @property
    def max_lag(self) -> int:
        return self.n.size


@dataclass
class CrossBatchAggregator:
    """Folds BatchResults into running mean/variance per lag.

    A lag of a batch contributes only when it rests on more than min_pairs
    observation pairs. Not thread safe; a single consumer owns it.
    """
    max_lag: int
    min_pairs: int = 0
    batches: int = 0
    reads_used: int = 0
    reads_discarded: int = 0
    pairs: int = 0
    meanvars: MeanVariance = field(init=False)

    def __post_init__(self):
        self.meanvars = MeanVariance(self.max_lag)

    def add(self, result: BatchResult) -> None:
        if result.covariances.size != self.max_lag:
            raise ValueError(
                f"Batch {result.reference} has {result.covariances.size} lags, "
                f"expected {self.max_lag}"
            )
        self.meanvars.increment(result.covariances, result.counts > self.min_pairs)
        self.batches += 1
        self.reads_used += result.reads_used
        self.reads_discarded += result.reads_discarded
        self.pairs += result.pairs

    def result(self) -> LagStatistics:
        return LagStatistics(
            mean=self.meanvars.means(),
            variance=self.meanvars.variance(),
            n=self.meanvars.n.copy(),
            batches=self.batches,
            reads_used=self.reads_used,
            reads_discarded=self.reads_discarded,
            pairs=self.pairs,
        )

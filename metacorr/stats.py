"""Online estimators indexed by lag.

Both keep one Welford-style accumulator per lag in numpy arrays, so a set of
distinct lags can be updated in a single vectorized step.
"""
from __future__ import annotations

import numpy as np


class LagCovariance:
    """Population covariance of (x, y) pairs, one estimator per lag."""

    def __init__(self, max_lag: int):
        self.n = np.zeros(max_lag, dtype=np.int64)
        self.mean_x = np.zeros(max_lag, dtype=np.float64)
        self.mean_y = np.zeros(max_lag, dtype=np.float64)
        self.comoment = np.zeros(max_lag, dtype=np.float64)

    def __len__(self) -> int:
        return self.n.size

    def increment(self, lags, x, y) -> None:
        """Add pairs (x[k], y[k]) at lags[k]; lags must not repeat.

        x may be a scalar shared by all pairs.
        """
        lags = np.asarray(lags, dtype=np.intp)
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        n = self.n[lags] + 1
        dx = x - self.mean_x[lags]
        self.mean_x[lags] += dx / n
        mean_y = self.mean_y[lags] + (y - self.mean_y[lags]) / n
        self.comoment[lags] += dx * (y - mean_y)
        self.mean_y[lags] = mean_y
        self.n[lags] = n

    def defined(self) -> np.ndarray:
        return self.n > 0

    def result(self) -> np.ndarray:
        """Covariance per lag; entries where n == 0 are 0 and not defined()."""
        out = np.zeros_like(self.comoment)
        np.divide(self.comoment, self.n, out=out, where=self.n > 0)
        return out


class MeanVariance:
    """Mean and unbiased variance of scalar samples, one estimator per lag."""

    def __init__(self, max_lag: int):
        self.n = np.zeros(max_lag, dtype=np.int64)
        self.mean = np.zeros(max_lag, dtype=np.float64)
        self.m2 = np.zeros(max_lag, dtype=np.float64)

    def __len__(self) -> int:
        return self.n.size

    def increment(self, values, mask=None) -> None:
        """Add values[lag] to each lag where mask is true (all lags by default)."""
        values = np.asarray(values, dtype=np.float64)
        if mask is None:
            lags = np.arange(self.n.size)
        else:
            lags = np.flatnonzero(mask)
        if lags.size == 0:
            return
        v = values[lags]
        n = self.n[lags] + 1
        delta = v - self.mean[lags]
        mean = self.mean[lags] + delta / n
        self.m2[lags] += delta * (v - mean)
        self.mean[lags] = mean
        self.n[lags] = n

    def variance(self) -> np.ndarray:
        """Sample variance per lag; NaN where fewer than two samples."""
        out = np.full_like(self.m2, np.nan)
        np.divide(self.m2, self.n - 1, out=out, where=self.n > 1)
        return out

    def means(self) -> np.ndarray:
        """Mean per lag; NaN where no samples."""
        return np.where(self.n > 0, self.mean, np.nan)

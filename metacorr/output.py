"""Write the per-lag correlation table."""
from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import pandas as pd

from metacorr.correlation import LagStatistics

logger = logging.getLogger(__name__)

COLUMNS = ["l", "m", "v", "n", "t", "b"]


def results_table(stats: LagStatistics) -> pd.DataFrame:
    """One row per lag: l, m, v, n, t, b.

    Row 0 (t = Ks) holds the mean same-site covariance; rows with t = P2 hold
    mean[lag] / Ks. Undefined values are NaN.
    """
    lags = np.arange(stats.max_lag)
    m = stats.mean.astype(np.float64).copy()
    if m.size > 1:
        ks = m[0]
        if np.isfinite(ks) and ks != 0:
            m[1:] = m[1:] / ks
        else:
            m[1:] = np.nan
    return pd.DataFrame({
        "l": lags,
        "m": m,
        "v": stats.variance,
        "n": stats.n,
        "t": np.where(lags == 0, "Ks", "P2"),
        "b": "all",
    }, columns=COLUMNS)


def write_results(stats: LagStatistics, path: str) -> pd.DataFrame:
    """Write the table as CSV, or as JSON records if path ends in .json."""
    table = results_table(stats)
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    if out.suffix == ".json":
        table.to_json(out, orient="records", indent=2)
    else:
        table.to_csv(out, index=False, na_rep="")
    logger.info(f"Wrote {len(table)} lags to {out}")
    return table

"""Information criteria helpers (AIC/BIC) for least-squares fits."""

from __future__ import annotations

import numpy as np

_RSS_FLOOR = 1e-300


def aic_from_rss(rss: float, k: int, n: int) -> float:
    """Gaussian-error AIC: n*ln(RSS/n) + 2k."""
    n = max(n, 1)
    return float(n * np.log(max(rss, _RSS_FLOOR) / n) + 2 * k)


def bic_from_rss(rss: float, k: int, n: int) -> float:
    n = max(n, 1)
    return float(n * np.log(max(rss, _RSS_FLOOR) / n) + k * np.log(n))


__all__ = ["aic_from_rss", "bic_from_rss"]

"""
Residual diagnostics for fitted forecasters.

A well specified model leaves residuals that look like white noise: no
autocorrelation left to exploit. The Ljung-Box portmanteau test checks the
first ``lags`` autocorrelations jointly.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from statsmodels.stats.diagnostic import acorr_ljungbox
from statsmodels.tsa.stattools import acf

logger = logging.getLogger(__name__)


def default_lags(n: int, seasonal_periods: int = 1) -> int:
    """``min(10, n/5)`` for non-seasonal data, ``min(2m, n/5)`` for seasonal data."""
    cap = n // 5
    lags = min(2 * seasonal_periods, cap) if seasonal_periods > 1 else min(10, cap)
    return max(lags, 1)


@dataclass
class ResidualDiagnostics:
    lags: int
    statistic: float
    p_value: float
    dof: int
    alpha: float
    mean: float
    std: float
    nobs: int
    acf: np.ndarray

    @property
    def is_white_noise(self) -> bool:
        return bool(self.p_value > self.alpha)

    @property
    def acf_bound(self) -> float:
        """Approximate 95% band for a single autocorrelation under white noise."""
        return 1.96 / np.sqrt(self.nobs)

    def to_dict(self) -> dict:
        return {
            'lags': self.lags,
            'statistic': self.statistic,
            'p_value': self.p_value,
            'dof': self.dof,
            'mean': self.mean,
            'std': self.std,
            'white_noise': self.is_white_noise,
        }


def check_residuals(residuals, lags: int = None, model_df: int = 0, alpha: float = 0.05,
                    seasonal_periods: int = 1) -> ResidualDiagnostics:
    """Ljung-Box test and autocorrelations of a residual series.

    ``model_df`` is the number of estimated parameters; it is subtracted
    from the degrees of freedom, keeping at least one.
    """
    resid = pd.Series(np.asarray(residuals, dtype=float)).dropna().to_numpy()
    if resid.size < 3:
        raise ValueError("Need at least 3 non-missing residuals")
    if lags is None:
        lags = default_lags(resid.size, seasonal_periods)
    lags = int(min(max(lags, 1), resid.size - 1))
    model_df = int(min(max(model_df, 0), lags - 1))

    lb = acorr_ljungbox(resid, lags=[lags], model_df=model_df, return_df=True)
    stat = float(lb['lb_stat'].iloc[-1])
    p_value = float(lb['lb_pvalue'].iloc[-1])
    rho = acf(resid, nlags=lags, fft=True)[1:]

    diag = ResidualDiagnostics(
        lags=lags,
        statistic=stat,
        p_value=p_value,
        dof=lags - model_df,
        alpha=alpha,
        mean=float(resid.mean()),
        std=float(resid.std(ddof=1)),
        nobs=int(resid.size),
        acf=np.asarray(rho, dtype=float),
    )
    logger.debug(f"Ljung-Box Q*={stat:.2f}, df={diag.dof}, p={p_value:.4f}")
    return diag

"""
Automatic ETS model selection over the statsmodels state-space models.

Every admissible combination of error, trend and seasonal component is
fitted by maximum likelihood and the one with the smallest information
criterion (AICc by default) is kept.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from .exceptions import ModelFittingError
from .forecasting import ETSForecaster, _Forecaster, _to_series, ets_label

logger = logging.getLogger(__name__)

CRITERIA = ('aicc', 'aic', 'bic')
TABLE_COLUMNS = ['model', 'error', 'trend', 'damped', 'seasonal', 'aic', 'aicc', 'bic', 'converged']

Candidate = Tuple[str, Optional[str], bool, Optional[str]]


def candidate_models(y, seasonal_periods: int = 1, damped: Optional[bool] = None,
                     allow_multiplicative: Optional[bool] = None) -> List[Candidate]:
    """List admissible ``(error, trend, damped, seasonal)`` combinations in grid order.

    Multiplicative error or seasonality needs strictly positive data, a
    seasonal component needs at least two full cycles, and additive error
    is never combined with multiplicative seasonality.
    """
    arr = _to_series(y).to_numpy(dtype=float)
    positive = bool(arr.size) and bool(np.all(arr > 0))
    if allow_multiplicative is None:
        allow_multiplicative = positive
    elif allow_multiplicative and not positive:
        raise ValueError("Multiplicative components require strictly positive data")

    errors = ['add', 'mul'] if allow_multiplicative else ['add']
    trends: List[Tuple[Optional[str], bool]] = [(None, False)]
    if damped is not True:
        trends.append(('add', False))
    if damped is not False:
        trends.append(('add', True))
    seasonals: List[Optional[str]] = [None]
    if seasonal_periods > 1 and arr.size >= 2 * seasonal_periods:
        seasonals.append('add')
        if allow_multiplicative:
            seasonals.append('mul')

    out = []
    for error in errors:
        for trend, is_damped in trends:
            for seasonal in seasonals:
                if error == 'add' and seasonal == 'mul':
                    continue
                out.append((error, trend, is_damped, seasonal))
    return out


@dataclass
class SelectionResult:
    best: ETSForecaster
    table: pd.DataFrame
    criterion: str = 'aicc'

    @property
    def label(self) -> str:
        return self.best.label


def select_ets(y, seasonal_periods: int = 1, criterion: str = 'aicc', damped: Optional[bool] = None,
               allow_multiplicative: Optional[bool] = None) -> SelectionResult:
    """Fit every admissible ETS model and keep the best by ``criterion``.

    Candidates that fail to fit stay in the table with missing scores.
    Ties go to the candidate that comes first in grid order.
    """
    if criterion not in CRITERIA:
        raise ValueError(f"criterion must be one of {CRITERIA}")
    y = _to_series(y)
    if y.size == 0:
        raise ValueError("y is empty")
    candidates = candidate_models(y, seasonal_periods, damped=damped,
                                  allow_multiplicative=allow_multiplicative)
    logger.info(f"Selecting among {len(candidates)} ETS models by {criterion} on {y.size} observations")

    rows = []
    fitted = []
    for error, trend, is_damped, seasonal in candidates:
        model = ETSForecaster(error=error, trend=trend, damped_trend=is_damped, seasonal=seasonal,
                              seasonal_periods=seasonal_periods if seasonal else None)
        row = {
            'model': ets_label(error, trend, is_damped, seasonal),
            'error': error, 'trend': trend, 'damped': is_damped, 'seasonal': seasonal,
            'aic': np.nan, 'aicc': np.nan, 'bic': np.nan, 'converged': False,
        }
        try:
            model.fit(y)
        except (ModelFittingError, ValueError) as e:
            logger.debug(f"{row['model']} failed: {e}")
            model = None
        else:
            row.update(aic=model.aic_, aicc=model.aicc_, bic=model.bic_, converged=model.converged_)
        rows.append(row)
        fitted.append(model)

    table = pd.DataFrame(rows, columns=TABLE_COLUMNS)
    scores = table[criterion].to_numpy(dtype=float)
    finite = np.isfinite(scores)
    if not finite.any():
        raise ModelFittingError("ETS", "no candidate model could be fitted")

    best_pos = int(np.flatnonzero(finite)[np.argmin(scores[finite])])
    best = fitted[best_pos]
    logger.info(f"Selected {best.label} ({criterion}={scores[best_pos]:.2f})")

    table = table.assign(_order=np.where(finite, scores, np.inf), _pos=np.arange(len(table)))
    table = table.sort_values(['_order', '_pos'], kind='mergesort').drop(columns=['_order', '_pos'])
    return SelectionResult(best=best, table=table.reset_index(drop=True), criterion=criterion)


@dataclass
class AutoETSForecaster(_Forecaster):
    """Forecaster whose ETS form is chosen by :func:`select_ets` at fit time."""
    seasonal_periods: int = 1
    criterion: str = 'aicc'
    damped: Optional[bool] = None

    def fit(self, y):
        self._set_history(y)
        self.selection_ = select_ets(self.history_, seasonal_periods=self.seasonal_periods,
                                     criterion=self.criterion, damped=self.damped)
        self.best_ = self.selection_.best
        self.aic_ = self.best_.aic_
        self.aicc_ = self.best_.aicc_
        self.bic_ = self.best_.bic_
        self._set_fitted(self.best_.fitted_.to_numpy())
        return self

    @property
    def label(self) -> str:
        best = getattr(self, 'best_', None)
        return best.label if best is not None else "Auto ETS"

    @property
    def n_params(self) -> int:
        best = getattr(self, 'best_', None)
        return best.n_params if best is not None else 0

    def _predict_mean(self, horizon: int):
        return self.best_.predict(horizon)

    def _bounds(self, horizon, mean, levels):
        return self.best_._bounds(horizon, mean, levels)

    def summary(self) -> dict:
        self._check_fitted()
        return self.best_.summary()

    def components(self) -> pd.DataFrame:
        self._check_fitted()
        return self.best_.components()

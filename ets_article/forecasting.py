"""Forecasters used throughout the article.

Every forecaster follows the same small contract: ``fit(y)`` returns the
forecaster, ``predict(h)`` returns the point forecasts as an array and
``forecast(h, levels)`` returns a :class:`ForecastResult` with prediction
intervals, indexed by the continuation of the training index. After
fitting, ``fitted_`` and ``residuals_`` hold the one-step in-sample
forecasts and errors.

Three frameworks do the actual estimation:

* ``statsmodels.tsa.holtwinters`` (:class:`HoltWintersForecaster`)
* ``statsmodels.tsa.exponential_smoothing.ets`` (:class:`ETSForecaster`)
* ``statsforecast`` (:class:`StatsForecastETSForecaster`)

The naive benchmarks and :class:`ExpSmoothingForecaster` are computed here.
"""
from __future__ import annotations
import inspect
import logging
import warnings
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.stats import norm
from statsmodels.tools.sm_exceptions import ConvergenceWarning
from statsmodels.tsa.exponential_smoothing.ets import ETSModel, ETSResults
from statsmodels.tsa.holtwinters import ExponentialSmoothing

from .exceptions import ModelFittingError

logger = logging.getLogger(__name__)

ArrayLike = Sequence[float]
DEFAULT_LEVELS: Tuple[int, ...] = (80, 95)

_COMPONENT_CODES = {'add': 'A', 'mul': 'M', None: 'N'}
_CODE_COMPONENTS = {'A': 'add', 'M': 'mul', 'N': None}

# statsmodels 0.15 renamed the simulation seed from random_state to rng
_SEED_ARG = 'rng' if 'rng' in inspect.signature(ETSResults.simulate).parameters else 'random_state'


@dataclass
class ForecastResult:
    label: str
    mean: pd.Series
    lower: Dict[int, pd.Series] = field(default_factory=dict)
    upper: Dict[int, pd.Series] = field(default_factory=dict)

    @property
    def levels(self) -> Tuple[int, ...]:
        return tuple(sorted(self.lower))

    def to_frame(self) -> pd.DataFrame:
        cols = {'mean': self.mean}
        for level in self.levels:
            cols[f'lo{level}'] = self.lower[level]
            cols[f'hi{level}'] = self.upper[level]
        return pd.DataFrame(cols)


def ets_label(error: Optional[str], trend: Optional[str], damped: bool, seasonal: Optional[str]) -> str:
    """``ETS(E,T,S)`` label from statsmodels component names."""
    t = _COMPONENT_CODES[trend] + ('d' if damped and trend else '')
    return f"ETS({_COMPONENT_CODES[error]},{t},{_COMPONENT_CODES[seasonal]})"


def parse_ets_code(code: str) -> Tuple[str, Optional[str], bool, Optional[str]]:
    """Parse a compact code such as ``"MAdM"`` into ``(error, trend, damped, seasonal)``."""
    c = code.strip()
    if len(c) not in (3, 4) or c[0] not in 'AM' or c[-1] not in 'ANM':
        raise ValueError(f"Invalid ETS code {code!r}")
    trend_code = c[1:-1]
    if trend_code not in ('N', 'A', 'Ad', 'M', 'Md'):
        raise ValueError(f"Invalid ETS code {code!r}")
    return (
        _CODE_COMPONENTS[c[0]],
        _CODE_COMPONENTS[trend_code[0]],
        trend_code.endswith('d'),
        _CODE_COMPONENTS[c[-1]],
    )


def future_index(index: pd.Index, horizon: int) -> pd.Index:
    """Index for ``horizon`` steps after the end of ``index``."""
    if isinstance(index, pd.PeriodIndex):
        return pd.period_range(index[-1] + 1, periods=horizon, freq=index.freq)
    if isinstance(index, pd.DatetimeIndex):
        freq = index.freq
        if freq is None and len(index) >= 3:
            freq = pd.infer_freq(index)
        if freq is not None:
            return pd.date_range(index[-1], periods=horizon + 1, freq=freq)[1:]
    elif len(index) and pd.api.types.is_integer_dtype(index.dtype):
        start = int(index[-1]) + 1
        return pd.RangeIndex(start, start + horizon)
    return pd.RangeIndex(len(index), len(index) + horizon)


def _to_series(y: ArrayLike) -> pd.Series:
    if isinstance(y, pd.Series):
        return y.astype(float)
    arr = np.asarray(y, dtype=float)
    if arr.ndim != 1:
        raise ValueError("Input series must be 1-D")
    return pd.Series(arr)


def _check_levels(levels: Sequence[int]) -> Tuple[int, ...]:
    out = tuple(int(l) for l in levels)
    for l in out:
        if not 0 < l < 100:
            raise ValueError(f"Interval level must be in (0, 100), got {l}")
    return out


class _Forecaster:
    """Shared history handling, residuals and interval construction."""

    n_params: int = 0

    @property
    def label(self) -> str:
        return type(self).__name__

    # ------------------------ Public API ------------------------
    def predict(self, horizon: int) -> np.ndarray:
        self._check_fitted()
        if int(horizon) < 1:
            raise ValueError("horizon must be >= 1")
        return np.asarray(self._predict_mean(int(horizon)), dtype=float)

    def forecast(self, horizon: int, levels: Sequence[int] = DEFAULT_LEVELS) -> ForecastResult:
        levels = _check_levels(levels)
        mean = self.predict(horizon)
        idx = future_index(self.history_.index, int(horizon))
        lower, upper = self._bounds(int(horizon), mean, levels)
        return ForecastResult(
            label=self.label,
            mean=pd.Series(mean, index=idx, name='mean'),
            lower={l: pd.Series(lower[l], index=idx, name=f'lo{l}') for l in levels},
            upper={l: pd.Series(upper[l], index=idx, name=f'hi{l}') for l in levels},
        )

    @property
    def sigma_(self) -> float:
        """Residual standard deviation, corrected for the number of parameters."""
        self._check_fitted()
        resid = self.residuals_.dropna().to_numpy()
        dof = max(resid.size - self.n_params, 1)
        return float(np.sqrt(np.sum(resid ** 2) / dof))

    def summary(self) -> dict:
        self._check_fitted()
        out = {'model': self.label, 'nobs': int(len(self.history_)), 'sigma': self.sigma_}
        for key in ('aic_', 'aicc_', 'bic_'):
            if getattr(self, key, None) is not None:
                out[key.rstrip('_')] = float(getattr(self, key))
        return out

    # ------------------------ Internal ------------------------
    def _set_history(self, y: ArrayLike) -> np.ndarray:
        s = _to_series(y)
        if s.size == 0:
            raise ValueError("y is empty")
        if s.isna().any():
            raise ValueError("y contains missing values")
        self.history_ = s
        return s.to_numpy(dtype=float)

    def _set_fitted(self, fitted) -> None:
        self.fitted_ = pd.Series(np.asarray(fitted, dtype=float), index=self.history_.index, name='fitted')
        self.residuals_ = (self.history_ - self.fitted_).rename('residuals')

    def _check_fitted(self):
        if not hasattr(self, 'fitted_'):
            raise RuntimeError("Call fit first")

    def _predict_mean(self, horizon: int) -> np.ndarray:
        raise NotImplementedError

    def _spread(self, steps: np.ndarray) -> np.ndarray:
        """Forecast standard error at each step, in units of ``sigma_``."""
        return np.sqrt(steps)

    def _bounds(self, horizon: int, mean: np.ndarray, levels: Tuple[int, ...]):
        scale = self.sigma_ * self._spread(np.arange(1, horizon + 1, dtype=float))
        lower, upper = {}, {}
        for level in levels:
            z = norm.ppf(0.5 + level / 200.0)
            lower[level] = mean - z * scale
            upper[level] = mean + z * scale
        return lower, upper


@dataclass
class NaiveForecaster(_Forecaster):
    """Repeats the last observation; the one-step fit is the previous value."""
    def fit(self, y: ArrayLike):
        arr = self._set_history(y)
        self.last_ = float(arr[-1])
        fitted = np.r_[np.nan, arr[:-1]]
        self._set_fitted(fitted)
        return self

    @property
    def label(self) -> str:
        return "Naive"

    def _predict_mean(self, horizon: int):
        return np.full(shape=horizon, fill_value=self.last_, dtype=float)


@dataclass
class SeasonalNaiveForecaster(_Forecaster):
    season_length: int = 1

    def fit(self, y: ArrayLike):
        arr = self._set_history(y)
        if self.season_length < 1:
            raise ValueError("season_length must be >= 1")
        if arr.size < self.season_length:
            raise ValueError("Not enough data for a full season")
        m = self.season_length
        fitted = np.r_[np.full(m, np.nan), arr[:-m]]
        self._set_fitted(fitted)
        return self

    @property
    def label(self) -> str:
        return "Seasonal naive"

    def _predict_mean(self, horizon: int):
        arr = self.history_.to_numpy(dtype=float)
        reps = int(np.ceil(horizon / self.season_length))
        pattern = arr[-self.season_length:]
        return np.tile(pattern, reps)[:horizon].astype(float)

    def _spread(self, steps):
        return np.sqrt(np.floor((steps - 1) / self.season_length) + 1)


@dataclass
class ExpSmoothingForecaster(_Forecaster):
    """Simple exponential smoothing with a fixed smoothing factor.

    The level is updated as ``l_t = alpha * y_t + (1 - alpha) * l_{t-1}``;
    the one-step forecast made at ``t - 1`` is ``l_{t-1}``.
    """
    alpha: float = 0.3  # smoothing factor in (0,1]
    initial_level: Optional[float] = None

    n_params = 1

    def fit(self, y: ArrayLike):
        arr = self._set_history(y)
        alpha = self.alpha
        if not (0 < alpha <= 1):
            raise ValueError("alpha must be in (0,1]")
        level = self.initial_level if self.initial_level is not None else arr[0]
        fitted = np.empty_like(arr)
        for i, v in enumerate(arr):
            fitted[i] = level
            level = alpha * v + (1 - alpha) * level
        self.level_ = float(level)
        self._set_fitted(fitted)
        return self

    @property
    def label(self) -> str:
        return f"SES (alpha={self.alpha:.2f})"

    def _predict_mean(self, horizon: int):
        return np.full(horizon, self.level_, dtype=float)

    def _spread(self, steps):
        return np.sqrt(1 + (steps - 1) * self.alpha ** 2)


@dataclass
class HoltWintersForecaster(_Forecaster):
    """Holt-Winters family fitted with ``statsmodels.tsa.holtwinters``.

    Covers simple exponential smoothing (no trend, no season), Holt's linear
    trend, the damped trend and the seasonal Holt-Winters methods. The
    library returns point forecasts only; intervals are a normal
    approximation from the residual standard deviation.
    """
    trend: Optional[str] = None
    damped_trend: bool = False
    seasonal: Optional[str] = None
    seasonal_periods: Optional[int] = None

    def fit(self, y: ArrayLike):
        arr = self._set_history(y)
        if self.damped_trend and self.trend is None:
            raise ValueError("damped_trend requires a trend")
        if self.seasonal and (self.seasonal_periods is None or self.seasonal_periods < 2):
            raise ValueError("seasonal models need seasonal_periods >= 2")
        if 'mul' in (self.trend, self.seasonal) and arr.min() <= 0:
            raise ValueError("Multiplicative components require strictly positive data")
        logger.debug(f"Fitting {self.label} on {arr.size} observations")
        try:
            with warnings.catch_warnings():
                warnings.simplefilter('ignore', ConvergenceWarning)
                model = ExponentialSmoothing(
                    arr,
                    trend=self.trend,
                    damped_trend=self.damped_trend,
                    seasonal=self.seasonal,
                    seasonal_periods=self.seasonal_periods if self.seasonal else None,
                    initialization_method='estimated',
                )
                self.result_ = model.fit(optimized=True)
        except (ValueError, np.linalg.LinAlgError) as e:
            raise ModelFittingError(self.label, str(e)) from e
        self.aic_ = float(self.result_.aic)
        self.aicc_ = float(self.result_.aicc)
        self.bic_ = float(self.result_.bic)
        self._set_fitted(self.result_.fittedvalues)
        return self

    @property
    def label(self) -> str:
        if self.seasonal:
            kind = 'additive' if self.seasonal == 'add' else 'multiplicative'
            damped = ' damped' if self.damped_trend else ''
            return f"Holt-Winters {kind}{damped}"
        if self.trend:
            return "Damped Holt" if self.damped_trend else "Holt"
        return "SES"

    @property
    def n_params(self) -> int:
        smoothing = 1 + bool(self.trend) + bool(self.damped_trend) + bool(self.seasonal)
        states = 1 + bool(self.trend) + (self.seasonal_periods if self.seasonal else 0)
        return smoothing + states

    def _predict_mean(self, horizon: int):
        return self.result_.forecast(horizon)

    def summary(self) -> dict:
        out = super().summary()
        for key, value in self.result_.params.items():
            if key.startswith(('smoothing_', 'damping_', 'initial_')) and np.isscalar(value) and np.isfinite(value):
                out[key] = float(value)
        return out

    def components(self) -> pd.DataFrame:
        self._check_fitted()
        return _components_frame(self.result_, self.history_.index)


@dataclass
class ETSForecaster(_Forecaster):
    """Innovations state-space ETS model from ``statsmodels``.

    Parameters are estimated by maximum likelihood. Prediction intervals
    come from ``get_prediction``: analytic for all-additive models, by
    simulation otherwise (seeded with ``random_state``).
    """
    error: str = 'add'
    trend: Optional[str] = None
    damped_trend: bool = False
    seasonal: Optional[str] = None
    seasonal_periods: Optional[int] = None
    simulate_repetitions: int = 1000
    random_state: Optional[int] = 0

    def fit(self, y: ArrayLike):
        arr = self._set_history(y)
        if self.error not in ('add', 'mul'):
            raise ValueError("error must be 'add' or 'mul'")
        if self.damped_trend and self.trend is None:
            raise ValueError("damped_trend requires a trend")
        if self.seasonal and (self.seasonal_periods is None or self.seasonal_periods < 2):
            raise ValueError("seasonal models need seasonal_periods >= 2")
        if 'mul' in (self.error, self.trend, self.seasonal) and arr.min() <= 0:
            raise ValueError("Multiplicative components require strictly positive data")
        logger.debug(f"Fitting {self.label} on {arr.size} observations")
        try:
            with warnings.catch_warnings():
                warnings.simplefilter('ignore', ConvergenceWarning)
                model = ETSModel(
                    pd.Series(arr),
                    error=self.error,
                    trend=self.trend,
                    damped_trend=self.damped_trend,
                    seasonal=self.seasonal,
                    seasonal_periods=self.seasonal_periods if self.seasonal else None,
                    initialization_method='estimated',
                )
                self.result_ = model.fit(disp=False)
        except (ValueError, np.linalg.LinAlgError) as e:
            raise ModelFittingError(self.label, str(e)) from e
        res = self.result_
        self.aic_ = float(res.aic)
        self.aicc_ = float(res.aicc)
        self.bic_ = float(res.bic)
        self.llf_ = float(res.llf)
        retvals = getattr(res, 'mle_retvals', None)
        self.converged_ = bool(retvals.get('converged', retvals.get('success', True))) if isinstance(retvals, dict) else True
        self._set_fitted(res.fittedvalues)
        return self

    @property
    def label(self) -> str:
        return ets_label(self.error, self.trend, self.damped_trend, self.seasonal)

    @property
    def n_params(self) -> int:
        if hasattr(self, 'result_'):
            return int(len(self.result_.params))
        return 0

    def _predict_mean(self, horizon: int):
        return self.result_.forecast(horizon)

    def _bounds(self, horizon: int, mean: np.ndarray, levels: Tuple[int, ...]):
        nobs = len(self.history_)
        pred = self.result_.get_prediction(
            start=nobs,
            end=nobs + horizon - 1,
            simulate_repetitions=self.simulate_repetitions,
            **{_SEED_ARG: self.random_state},
        )
        lower, upper = {}, {}
        for level in levels:
            frame = pred.summary_frame(alpha=1 - level / 100.0)
            lower[level] = frame['pi_lower'].to_numpy(dtype=float)
            upper[level] = frame['pi_upper'].to_numpy(dtype=float)
        return lower, upper

    def summary(self) -> dict:
        out = super().summary()
        names = getattr(self.result_.model, 'param_names', [])
        for name, value in zip(names, np.asarray(self.result_.params, dtype=float)):
            out[name] = float(value)
        out['llf'] = self.llf_
        return out

    def components(self) -> pd.DataFrame:
        self._check_fitted()
        return _components_frame(self.result_, self.history_.index)


@dataclass
class StatsForecastETSForecaster(_Forecaster):
    """``statsforecast.models.AutoETS``.

    ``model`` is a three-letter code in which ``Z`` lets the library pick
    the component by AICc, e.g. ``"ZZZ"`` for a fully automatic search.
    """
    model: str = 'ZZZ'
    season_length: int = 1
    damped: Optional[bool] = None

    def fit(self, y: ArrayLike):
        from statsforecast.models import AutoETS

        arr = self._set_history(y)
        try:
            m = AutoETS(season_length=self.season_length, model=self.model, damped=self.damped)
            m.fit(arr)
        except (ValueError, np.linalg.LinAlgError) as e:
            raise ModelFittingError(f"AutoETS({self.model})", str(e)) from e
        self.model_ = m
        info = m.model_
        self.aicc_ = float(info['aicc'])
        self.aic_ = float(info['aic']) if 'aic' in info else None
        self.bic_ = float(info['bic']) if 'bic' in info else None
        self.method_ = _statsforecast_method(info)
        par = np.asarray(info.get('par', []), dtype=float)
        self._n_params = int(np.count_nonzero(~np.isnan(par)))
        self._set_fitted(m.predict_in_sample()['fitted'])
        return self

    @property
    def label(self) -> str:
        return getattr(self, 'method_', None) or f"AutoETS({self.model})"

    @property
    def n_params(self) -> int:
        return getattr(self, '_n_params', 0)

    def _predict_mean(self, horizon: int):
        return self.model_.predict(h=horizon)['mean']

    def _bounds(self, horizon: int, mean: np.ndarray, levels: Tuple[int, ...]):
        out = self.model_.predict(h=horizon, level=list(levels))
        lower = {l: np.asarray(out[f'lo-{l}'], dtype=float) for l in levels}
        upper = {l: np.asarray(out[f'hi-{l}'], dtype=float) for l in levels}
        return lower, upper


def _statsforecast_method(info: dict) -> Optional[str]:
    method = info.get('method')
    if method:
        return str(method)
    comps = info.get('components')
    if comps is None or len(comps) < 3:
        return None
    damped = len(comps) > 3 and str(comps[3]).upper() == 'TRUE'
    trend = comps[1] + ('d' if damped and comps[1] != 'N' else '')
    return f"ETS({comps[0]},{trend},{comps[2]})"


def _components_frame(result, index: pd.Index) -> pd.DataFrame:
    """Estimated states aligned to ``index``; absent components are left out."""
    n = len(index)
    states = getattr(result, 'states', None)
    states = np.asarray(states, dtype=float) if states is not None else None
    cols = {}
    # ETSResults.trend is the component name ('add'); the states live in slope
    sources = {'level': ('level',), 'trend': ('slope', 'trend'), 'season': ('season',)}
    for name, attrs in sources.items():
        values = None
        for attr in attrs:
            candidate = getattr(result, attr, None)
            if candidate is not None and not isinstance(candidate, str):
                values = candidate
                break
        if values is None and name == 'level' and states is not None and states.ndim == 2:
            values = states[:, 0]
        if values is None:
            continue
        values = np.asarray(values)
        if values.ndim != 1 or not np.issubdtype(values.dtype, np.number):
            continue
        values = values.astype(float)
        if values.size == n + 1:
            values = values[1:]
        if values.size != n or np.all(np.isnan(values)):
            continue
        if name != 'level' and np.allclose(np.nan_to_num(values), 0):
            continue
        cols[name] = values
    return pd.DataFrame(cols, index=index)


MODEL_KEYS = (
    'naive', 'snaive', 'ses-manual', 'ses', 'holt', 'damped',
    'hw-additive', 'hw-multiplicative', 'ets:<code>', 'auto', 'statsforecast',
)


def build_forecaster(key: str, seasonal_periods: int = 1):
    """Create an unfitted forecaster from a short model key.

    ``ets:<code>`` takes a compact code such as ``ets:MAdM``.
    """
    m = int(seasonal_periods)
    if key == 'naive':
        return NaiveForecaster()
    if key == 'snaive':
        if m < 2:
            raise ValueError("snaive needs seasonal_periods >= 2")
        return SeasonalNaiveForecaster(season_length=m)
    if key == 'ses-manual':
        return ExpSmoothingForecaster()
    if key == 'ses':
        return HoltWintersForecaster()
    if key == 'holt':
        return HoltWintersForecaster(trend='add')
    if key == 'damped':
        return HoltWintersForecaster(trend='add', damped_trend=True)
    if key in ('hw-additive', 'hw-multiplicative'):
        if m < 2:
            raise ValueError(f"{key} needs seasonal_periods >= 2")
        seasonal = 'add' if key == 'hw-additive' else 'mul'
        return HoltWintersForecaster(trend='add', seasonal=seasonal, seasonal_periods=m)
    if key.startswith('ets:'):
        error, trend, damped, seasonal = parse_ets_code(key[4:])
        if seasonal and m < 2:
            raise ValueError(f"{key} needs seasonal_periods >= 2")
        return ETSForecaster(error=error, trend=trend, damped_trend=damped,
                             seasonal=seasonal, seasonal_periods=m if seasonal else None)
    if key == 'auto':
        from .selection import AutoETSForecaster
        return AutoETSForecaster(seasonal_periods=m)
    if key == 'statsforecast':
        return StatsForecastETSForecaster(season_length=m)
    raise ValueError(f"Unknown model key {key!r}; expected one of {', '.join(MODEL_KEYS)}")

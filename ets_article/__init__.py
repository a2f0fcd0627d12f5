"""ets_article: exponential smoothing forecasting, written up as an article.

Wraps three exponential smoothing frameworks (statsmodels Holt-Winters,
statsmodels ETS state space models, statsforecast AutoETS) behind one
small forecaster contract, adds AICc model selection and residual
diagnostics, and builds and lints the article that presents them.
"""
from .forecasting import (
    ForecastResult,
    NaiveForecaster,
    SeasonalNaiveForecaster,
    ExpSmoothingForecaster,
    HoltWintersForecaster,
    ETSForecaster,
    StatsForecastETSForecaster,
    build_forecaster,
    parse_ets_code,
)
from .selection import AutoETSForecaster, SelectionResult, select_ets
from .diagnostics import ResidualDiagnostics, check_residuals
from .metrics import mae, mape, mase, rmse, accuracy, train_test_split_chronological
from .datasets import DATASETS, DatasetLoader, DatasetSpec
from .exceptions import ContentError, DatasetError, EtsArticleError, ModelFittingError

__all__ = [
    "ForecastResult",
    "NaiveForecaster",
    "SeasonalNaiveForecaster",
    "ExpSmoothingForecaster",
    "HoltWintersForecaster",
    "ETSForecaster",
    "StatsForecastETSForecaster",
    "build_forecaster",
    "parse_ets_code",
    "AutoETSForecaster",
    "SelectionResult",
    "select_ets",
    "ResidualDiagnostics",
    "check_residuals",
    "mae",
    "mape",
    "mase",
    "rmse",
    "accuracy",
    "train_test_split_chronological",
    "DATASETS",
    "DatasetLoader",
    "DatasetSpec",
    "ContentError",
    "DatasetError",
    "EtsArticleError",
    "ModelFittingError",
]

import pandas as pd
import pytest

from ets_article import ETSForecaster, NaiveForecaster, check_residuals
from ets_article.plotting import plot_components, plot_forecast, plot_residuals, plot_series


def _is_png(path):
    return path.exists() and path.read_bytes()[:8] == b'\x89PNG\r\n\x1a\n'


def test_series_and_forecast_plots(tmp_path, trend_series):
    out = plot_series(trend_series, tmp_path / 'nested' / 'series.png', title='Trend')
    assert _is_png(out)

    model = NaiveForecaster().fit(trend_series)
    fc = model.forecast(5)
    out = plot_forecast(trend_series, fc, tmp_path / 'forecast.png', fitted=model.fitted_)
    assert _is_png(out)


def test_components_and_residual_plots(tmp_path, trend_series):
    model = ETSForecaster(trend='add').fit(trend_series)
    assert _is_png(plot_components(model.components(), tmp_path / 'components.png'))

    diag = check_residuals(model.residuals_, model_df=model.n_params)
    assert _is_png(plot_residuals(model.residuals_, diag, tmp_path / 'residuals.png'))


def test_components_requires_columns(tmp_path):
    with pytest.raises(ValueError):
        plot_components(pd.DataFrame(index=pd.RangeIndex(3)), tmp_path / 'empty.png')

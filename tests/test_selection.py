import numpy as np
import pytest

from ets_article import AutoETSForecaster, ModelFittingError, select_ets
from ets_article.selection import candidate_models


def test_candidate_grid_positive_seasonal(seasonal_series):
    cands = candidate_models(seasonal_series, seasonal_periods=4)
    assert len(cands) == 15
    assert ('add', None, False, 'mul') not in cands
    assert ('mul', 'add', True, 'mul') in cands
    assert cands[0] == ('add', None, False, None)


def test_candidate_grid_restrictions(seasonal_series):
    shifted = seasonal_series - 100
    cands = candidate_models(shifted, seasonal_periods=4)
    assert len(cands) == 6
    assert all(e == 'add' and s != 'mul' for e, _, _, s in cands)

    short = candidate_models(seasonal_series.iloc[:7], seasonal_periods=4)
    assert all(s is None for _, _, _, s in short)

    undamped = candidate_models(seasonal_series, seasonal_periods=4, damped=False)
    assert not any(d for _, _, d, _ in undamped)
    damped = candidate_models(seasonal_series, seasonal_periods=1, damped=True)
    assert {(t, d) for _, t, d, _ in damped} == {(None, False), ('add', True)}

    with pytest.raises(ValueError):
        candidate_models(shifted, seasonal_periods=4, allow_multiplicative=True)


def test_select_ets_picks_minimum_aicc(seasonal_series):
    result = select_ets(seasonal_series, seasonal_periods=4)
    table = result.table
    finite = table['aicc'].dropna()
    assert result.best.aicc_ == pytest.approx(finite.min())
    assert table['model'].iloc[0] == result.label
    assert list(finite) == sorted(finite)
    assert list(table.columns) == ['model', 'error', 'trend', 'damped', 'seasonal', 'aic', 'aicc', 'bic', 'converged']
    # clear additive seasonality should be picked up
    assert result.best.seasonal is not None


def test_select_ets_validates_arguments(seasonal_series):
    with pytest.raises(ValueError):
        select_ets(seasonal_series, seasonal_periods=4, criterion='hqic')
    with pytest.raises(ValueError):
        select_ets([], seasonal_periods=1)


def test_select_ets_all_candidates_fail(monkeypatch, trend_series):
    def boom(self, y):
        raise ModelFittingError(self.label, 'forced')

    monkeypatch.setattr('ets_article.selection.ETSForecaster.fit', boom)
    with pytest.raises(ModelFittingError):
        select_ets(trend_series)


def test_auto_forecaster(trend_series):
    f = AutoETSForecaster(seasonal_periods=1).fit(trend_series)
    assert f.label.startswith('ETS(')
    assert f.label == f.selection_.label
    fc = f.forecast(5)
    assert len(fc.mean) == 5
    assert str(fc.mean.index[0]) == '2020'
    assert np.isfinite(f.aicc_)
    assert f.summary()['model'] == f.label


def _scored_fit(scores, fail=lambda f: False):
    """Stand-in for ETSForecaster.fit with fixed information criteria."""
    def fit(self, y):
        if fail(self):
            raise ModelFittingError(self.label, 'forced')
        score = scores(self)
        self.aic_ = self.aicc_ = self.bic_ = score
        self.converged_ = True
        return self
    return fit


def test_select_ets_ties_keep_grid_order(monkeypatch, trend_series):
    monkeypatch.setattr('ets_article.selection.ETSForecaster.fit', _scored_fit(lambda f: 10.0))
    result = select_ets(trend_series)
    assert result.label == 'ETS(A,N,N)'
    assert list(result.table['model']) == [
        'ETS(A,N,N)', 'ETS(A,A,N)', 'ETS(A,Ad,N)', 'ETS(M,N,N)', 'ETS(M,A,N)', 'ETS(M,Ad,N)']


def test_select_ets_keeps_failed_candidates_last(monkeypatch, trend_series):
    fit = _scored_fit(lambda f: 3.0 if f.trend else 5.0, fail=lambda f: f.error == 'add')
    monkeypatch.setattr('ets_article.selection.ETSForecaster.fit', fit)
    result = select_ets(trend_series)
    table = result.table
    assert result.label == 'ETS(M,A,N)'
    assert list(table['model']) == [
        'ETS(M,A,N)', 'ETS(M,Ad,N)', 'ETS(M,N,N)', 'ETS(A,N,N)', 'ETS(A,A,N)', 'ETS(A,Ad,N)']
    failed = table.iloc[3:]
    assert failed['aicc'].isna().all()
    assert not failed['converged'].any()
    assert table.iloc[:3]['converged'].all()

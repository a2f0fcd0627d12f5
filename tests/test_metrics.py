import numpy as np
import pandas as pd
import pytest

from ets_article import accuracy, mae, mape, mase, rmse, train_test_split_chronological


def test_point_metrics():
    y = [1.0, 2.0, 4.0]
    p = [1.0, 3.0, 2.0]
    assert mae(y, p) == pytest.approx(1.0)
    assert rmse(y, p) == pytest.approx(np.sqrt(5 / 3))
    assert mape(y, p) == pytest.approx((0 + 0.5 + 0.5) / 3)


def test_size_mismatch():
    with pytest.raises(ValueError):
        mae([1, 2], [1])


def test_mase_scales_by_naive_error():
    train = [1.0, 2.0, 3.0, 4.0, 5.0]
    assert mase([6.0, 7.0], [6.0, 8.0], train) == pytest.approx(0.5)
    with pytest.raises(ValueError):
        mase([1.0], [1.0], [2.0, 2.0, 2.0])
    with pytest.raises(ValueError):
        mase([1.0], [1.0], [1.0, 2.0], m=4)


def test_accuracy_table_keys():
    out = accuracy([1.0, 2.0], [1.0, 2.0], y_train=[0.0, 1.0, 3.0], m=1)
    assert set(out) == {'mae', 'rmse', 'mape', 'mase'}
    assert 'mase' not in accuracy([1.0], [1.0])


def test_chronological_split():
    train, test = train_test_split_chronological(np.arange(10), 3)
    assert list(test) == [7, 8, 9]
    s = pd.Series(range(6), index=pd.period_range('2000Q1', periods=6, freq='Q'))
    train, test = train_test_split_chronological(s, 2)
    assert isinstance(train, pd.Series)
    assert str(test.index[0]) == '2001Q1'
    with pytest.raises(ValueError):
        train_test_split_chronological(s, 6)

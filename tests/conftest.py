from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from ets_article import DatasetLoader


def write_rdatasets_csv(path: Path, values, start: float, frequency: int):
    n = len(values)
    df = pd.DataFrame({
        'rownames': range(1, n + 1),
        'time': [start + i / frequency for i in range(n)],
        'value': values,
    })
    df.to_csv(path, index=False)


def _synthetic():
    rng = np.random.default_rng(42)
    t40, t48, t50, t72 = np.arange(40), np.arange(48), np.arange(50), np.arange(72)
    return {
        'lynx': (1500 + 800 * np.sin(2 * np.pi * t40 / 10) + rng.normal(0, 100, 40), 1821.0, 1),
        'marathon': (150 - 30 * (1 - np.exp(-t50 / 15)) + rng.normal(0, 2, 50), 1897.0, 1),
        'austres': (13000 + 50 * t40 + rng.normal(0, 5, 40), 1971.25, 4),
        'a10': ((5 + 0.1 * t72) * (1 + 0.2 * np.sin(2 * np.pi * t72 / 12))
                * np.exp(rng.normal(0, 0.03, 72)), 1991.5, 12),
        'austourists': (30 + 0.3 * t48 + np.tile([5.0, -3.0, -6.0, 4.0], 12)
                        + rng.normal(0, 1, 48), 1999.0, 4),
    }


@pytest.fixture
def data_dir(tmp_path):
    d = tmp_path / 'data'
    d.mkdir()
    for name, (values, start, freq) in _synthetic().items():
        write_rdatasets_csv(d / f'{name}.csv', values, start, freq)
    return d


@pytest.fixture
def loader(data_dir):
    return DatasetLoader(data_dir)


@pytest.fixture
def seasonal_series():
    rng = np.random.default_rng(7)
    t = np.arange(48)
    values = 30 + 0.3 * t + np.tile([5.0, -3.0, -6.0, 4.0], 12) + rng.normal(0, 1, 48)
    index = pd.period_range('2000Q1', periods=48, freq='Q')
    return pd.Series(values, index=index, name='visitors')


@pytest.fixture
def trend_series():
    rng = np.random.default_rng(3)
    t = np.arange(40)
    index = pd.period_range('1980', periods=40, freq='Y')
    return pd.Series(100 + 2.0 * t + rng.normal(0, 1, 40), index=index, name='trend')

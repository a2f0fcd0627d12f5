import tempfile
from pathlib import Path

import pandas as pd
import pytest
import requests

from ets_article import DatasetError, DatasetLoader
from ets_article.datasets import decimal_time_to_period

from conftest import write_rdatasets_csv


def test_decimal_time_to_period():
    assert decimal_time_to_period(1991.5, 12) == pd.Period('1991-07', freq='M')
    assert decimal_time_to_period(1991 + 11 / 12, 12) == pd.Period('1991-12', freq='M')
    assert decimal_time_to_period(1985.25, 4) == pd.Period('1985Q2', freq='Q')
    assert str(decimal_time_to_period(1821.0, 1)) == '1821'
    with pytest.raises(DatasetError):
        decimal_time_to_period(1991.0, 7)


def test_decimal_time_rounding_rolls_into_next_year():
    # times written with limited precision round up past the last sub-period
    assert decimal_time_to_period(1991.97, 12) == pd.Period('1992-01', freq='M')
    assert decimal_time_to_period(1999.99, 4) == pd.Period('2000Q1', freq='Q')
    assert decimal_time_to_period(1991.9166, 12) == pd.Period('1991-12', freq='M')
    assert decimal_time_to_period(1990.9999999999, 1) == pd.Period('1991', freq='Y')


def test_loader_rdatasets_layout():
    with tempfile.TemporaryDirectory() as tmpdir:
        p = Path(tmpdir)
        write_rdatasets_csv(p / 'austres.csv', [13067.3, 13130.5, 13198.4, 13254.2, 13303.7], 1971.25, 4)
        loader = DatasetLoader(p)
        s = loader.load('austres')
        assert isinstance(s.index, pd.PeriodIndex)
        assert s.name == 'austres'
        assert len(s) == 5
        assert str(s.index[0]) == '1971Q2'
        assert str(s.index[-1]) == '1972Q2'
        assert s.iloc[0] == pytest.approx(13067.3)


def test_loader_date_layout_and_sorting(tmp_path):
    df = pd.DataFrame({'date': ['2001-03-01', '2001-01-01', '2001-02-01'], 'value': [3.0, 1.0, 2.0]})
    df.to_csv(tmp_path / 'monthly.csv', index=False)
    s = DatasetLoader.read_csv(tmp_path / 'monthly.csv', 12)
    assert list(s.to_numpy()) == [1.0, 2.0, 3.0]
    assert str(s.index[0]) == '2001-01'
    assert s.name == 'monthly'


def test_read_csv_rejects_bad_layouts(tmp_path):
    pd.DataFrame({'x': [1], 'y': [2]}).to_csv(tmp_path / 'a.csv', index=False)
    with pytest.raises(DatasetError):
        DatasetLoader.read_csv(tmp_path / 'a.csv', 1)

    pd.DataFrame({'stamp': [1], 'value': [2]}).to_csv(tmp_path / 'b.csv', index=False)
    with pytest.raises(DatasetError):
        DatasetLoader.read_csv(tmp_path / 'b.csv', 1)

    pd.DataFrame({'time': [1990.0, 1990.0], 'value': [1, 2]}).to_csv(tmp_path / 'c.csv', index=False)
    with pytest.raises(DatasetError, match='duplicate'):
        DatasetLoader.read_csv(tmp_path / 'c.csv', 1)

    with pytest.raises(DatasetError):
        DatasetLoader.read_csv(tmp_path / 'missing.csv', 1)


def test_missing_values_are_dropped(tmp_path):
    pd.DataFrame({'time': [1990.0, 1991.0, 1992.0], 'value': [1.0, None, 3.0]}).to_csv(tmp_path / 'd.csv', index=False)
    s = DatasetLoader.read_csv(tmp_path / 'd.csv', 1)
    assert len(s) == 2


def test_unknown_dataset(tmp_path):
    loader = DatasetLoader(tmp_path)
    with pytest.raises(DatasetError, match='Unknown dataset'):
        loader.load('sunspots')


def test_registry_covers_article_series(tmp_path):
    loader = DatasetLoader(tmp_path)
    assert loader.list_datasets() == ['a10', 'austourists', 'austres', 'lynx', 'marathon']
    assert loader.spec('a10').frequency == 12
    assert loader.path_for('lynx') == tmp_path / 'lynx.csv'


class _FakeResponse:
    def __init__(self, content: bytes, status: int = 200):
        self.content = content
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")


def test_download_writes_cache(tmp_path, monkeypatch):
    calls = []

    def fake_get(url, timeout):
        calls.append((url, timeout))
        return _FakeResponse(b'"rownames","time","value"\n"1",1821,269\n"2",1822,321\n')

    monkeypatch.setattr('ets_article.datasets.requests.get', fake_get)
    loader = DatasetLoader(tmp_path / 'cache', base_url='https://example.org/csv/', timeout=5)
    s = loader.load('lynx')
    assert calls == [('https://example.org/csv/datasets/lynx.csv', 5)]
    assert (tmp_path / 'cache' / 'lynx.csv').exists()
    assert list(s.to_numpy()) == [269.0, 321.0]

    # cached on disk: no second request
    loader.download('lynx')
    assert len(calls) == 1
    loader.download('lynx', force=True)
    assert len(calls) == 2


def test_download_failure(tmp_path, monkeypatch):
    monkeypatch.setattr('ets_article.datasets.requests.get',
                        lambda url, timeout: _FakeResponse(b'', status=404))
    loader = DatasetLoader(tmp_path)
    with pytest.raises(DatasetError, match='Failed downloading'):
        loader.download('a10')
    assert not (tmp_path / 'a10.csv').exists()


def test_summary_lists_local_datasets(data_dir):
    (data_dir / 'marathon.csv').unlink()
    stats = DatasetLoader(data_dir).summary()
    assert list(stats['name']) == ['a10', 'austourists', 'austres', 'lynx']
    row = stats.set_index('name').loc['a10']
    assert row['observations'] == 72
    assert row['start'] == '1991-07'

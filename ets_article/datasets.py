from __future__ import annotations
import logging
import math
import os
import pathlib
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

import pandas as pd
import requests

from .config import RDATASETS_URL
from .exceptions import DatasetError

logger = logging.getLogger(__name__)

# Period aliases by number of observations per year
PERIOD_FREQ = {1: 'Y', 4: 'Q', 12: 'M'}


@dataclass(frozen=True)
class DatasetSpec:
    name: str
    path: str
    frequency: int
    description: str
    units: str = ''


DATASETS: Dict[str, DatasetSpec] = {
    'marathon': DatasetSpec(
        'marathon', 'fpp2/marathon.csv', 1,
        'Winning times of the Boston marathon, men\'s open division', 'minutes'),
    'austres': DatasetSpec(
        'austres', 'datasets/austres.csv', 4,
        'Quarterly number of Australian residents', 'thousands'),
    'a10': DatasetSpec(
        'a10', 'fpp2/a10.csv', 12,
        'Monthly anti-diabetic drug subsidies in Australia', 'million AUD'),
    'austourists': DatasetSpec(
        'austourists', 'fpp2/austourists.csv', 4,
        'Quarterly visitor nights spent by international tourists in Australia', 'millions'),
    'lynx': DatasetSpec(
        'lynx', 'datasets/lynx.csv', 1,
        'Annual number of lynx trapped in the Mackenzie River district', 'count'),
}


def decimal_time_to_period(t: float, frequency: int) -> pd.Period:
    """Map an R ``ts`` decimal time (e.g. ``1991.5`` for July) to a Period."""
    if frequency not in PERIOD_FREQ:
        raise DatasetError(f"Unsupported frequency {frequency}; expected one of {sorted(PERIOD_FREQ)}")
    year = int(math.floor(t + 1e-9))
    sub = int(round((t - year) * frequency)) + 1
    if sub > frequency:
        year, sub = year + 1, 1
    if frequency == 1:
        return pd.Period(f"{year}", freq='Y')
    if frequency == 4:
        return pd.Period(f"{year}Q{sub}", freq='Q')
    return pd.Period(f"{year}-{sub:02d}", freq='M')


@dataclass
class DatasetLoader:
    """Fetches and parses the public series used in the article.

    Series are cached as CSV under ``data_dir`` and parsed into
    ``pd.Series`` objects with a ``PeriodIndex``.

    Parameters
    ----------
    data_dir : path-like
        Cache directory for downloaded CSV files.
    base_url : str
        Root URL the registry paths are resolved against.
    timeout : int
        Seconds before an HTTP request is abandoned.
    verbose : bool
        If True, logs progress at INFO instead of DEBUG.
    """
    data_dir: Union[str, os.PathLike]
    base_url: str = RDATASETS_URL
    timeout: int = 30
    verbose: bool = False
    registry: Dict[str, DatasetSpec] = field(default_factory=lambda: dict(DATASETS))

    _cache: Dict[str, pd.Series] = field(init=False, default_factory=dict, repr=False)

    # ------------------------ Public API ------------------------
    def list_datasets(self) -> List[str]:
        return sorted(self.registry)

    def spec(self, name: str) -> DatasetSpec:
        try:
            return self.registry[name]
        except KeyError:
            raise DatasetError(
                f"Unknown dataset {name!r}; available: {', '.join(self.list_datasets())}"
            ) from None

    def path_for(self, name: str) -> pathlib.Path:
        self.spec(name)
        return pathlib.Path(self.data_dir) / f"{name}.csv"

    def download(self, name: str, force: bool = False) -> pathlib.Path:
        spec = self.spec(name)
        target = self.path_for(name)
        if target.exists() and not force:
            self._log(f"Using cached {target}")
            return target
        url = f"{self.base_url.rstrip('/')}/{spec.path}"
        self._log(f"Downloading {name} from {url}")
        try:
            r = requests.get(url, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise DatasetError(f"Failed downloading {name} from {url}: {e}") from e
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(r.content)
        self._cache.pop(name, None)
        return target

    def load(self, name: str) -> pd.Series:
        """Return the named series, downloading it when no cache exists."""
        if name in self._cache:
            return self._cache[name].copy()
        spec = self.spec(name)
        path = self.path_for(name)
        if not path.exists():
            self.download(name)
        series = self.read_csv(path, spec.frequency, name=name)
        self._log(f"Loaded {name}: {len(series)} observations {series.index[0]}..{series.index[-1]}")
        self._cache[name] = series
        return series.copy()

    @staticmethod
    def read_csv(path: Union[str, os.PathLike], frequency: int, name: Optional[str] = None) -> pd.Series:
        """Parse a CSV export into a period-indexed series.

        Two layouts are understood: the Rdatasets export of an R ``ts``
        object (``time``/``value`` columns, decimal-year time) and a plain
        ``date``/``value`` layout with parseable dates.
        """
        path = pathlib.Path(path)
        if not path.exists():
            raise DatasetError(f"Data file not found: {path}")
        try:
            raw = pd.read_csv(path)
        except Exception as e:
            raise DatasetError(f"Failed reading {path}: {e}") from e
        cols = {c.lower().strip(): c for c in raw.columns}
        if 'value' not in cols:
            raise DatasetError(f"{path.name}: expected a 'value' column, got {list(raw.columns)}")
        if frequency not in PERIOD_FREQ:
            raise DatasetError(f"Unsupported frequency {frequency}; expected one of {sorted(PERIOD_FREQ)}")

        df = raw.dropna(subset=[cols['value']])
        values = pd.to_numeric(df[cols['value']], errors='coerce')
        if values.isna().any():
            raise DatasetError(f"{path.name}: non-numeric entries in 'value'")

        if 'time' in cols:
            times = pd.to_numeric(df[cols['time']], errors='coerce')
            if times.isna().any():
                raise DatasetError(f"{path.name}: non-numeric entries in 'time'")
            periods = [decimal_time_to_period(float(t), frequency) for t in times]
        elif 'date' in cols:
            dates = pd.to_datetime(df[cols['date']], errors='coerce')
            if dates.isna().any():
                raise DatasetError(f"{path.name}: unparseable entries in 'date'")
            periods = [d.to_period(PERIOD_FREQ[frequency]) for d in dates]
        else:
            raise DatasetError(f"{path.name}: expected a 'time' or 'date' column, got {list(raw.columns)}")

        index = pd.PeriodIndex(periods, freq=PERIOD_FREQ[frequency])
        series = pd.Series(values.to_numpy(dtype=float), index=index, name=name or path.stem)
        series = series.sort_index()
        if not series.index.is_unique:
            dupes = series.index[series.index.duplicated()].unique()
            raise DatasetError(f"{path.name}: duplicate periods {list(map(str, dupes[:5]))}")
        series.index.name = 'period'
        return series

    def summary(self) -> pd.DataFrame:
        """Basic stats for every dataset that is available locally."""
        data = []
        for name in self.list_datasets():
            if name not in self._cache and not self.path_for(name).exists():
                continue
            s = self.load(name)
            data.append({
                'name': name,
                'observations': len(s),
                'start': str(s.index[0]),
                'end': str(s.index[-1]),
                'mean': s.mean(),
                'std': s.std(),
                'min': s.min(),
                'max': s.max(),
            })
        return pd.DataFrame(data, columns=['name', 'observations', 'start', 'end', 'mean', 'std', 'min', 'max'])

    # ------------------------ Internal ------------------------
    def _log(self, msg: str):
        logger.log(logging.INFO if self.verbose else logging.DEBUG, msg)

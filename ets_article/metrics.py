from __future__ import annotations
import numpy as np
import pandas as pd
from typing import Dict, Optional, Sequence, Tuple, Union

ArrayLike = Sequence[float]

__all__ = ["mae", "mape", "rmse", "mase", "accuracy", "train_test_split_chronological"]

def _to_1d(y: ArrayLike) -> np.ndarray:
    if isinstance(y, (pd.Series, pd.Index)):
        return y.to_numpy(dtype=float)
    arr = np.asarray(y, dtype=float)
    if arr.ndim != 1:
        raise ValueError("Expected 1-D array")
    return arr

def _pair(y_true: ArrayLike, y_pred: ArrayLike) -> Tuple[np.ndarray, np.ndarray]:
    a = _to_1d(y_true)
    b = _to_1d(y_pred)
    if a.size != b.size:
        raise ValueError("Size mismatch")
    return a, b

def mae(y_true: ArrayLike, y_pred: ArrayLike) -> float:
    a, b = _pair(y_true, y_pred)
    return float(np.mean(np.abs(a - b)))

def mape(y_true: ArrayLike, y_pred: ArrayLike, epsilon: float = 1e-8) -> float:
    a, b = _pair(y_true, y_pred)
    denom = np.clip(np.abs(a), epsilon, None)
    return float(np.mean(np.abs((a - b) / denom)))

def rmse(y_true: ArrayLike, y_pred: ArrayLike) -> float:
    a, b = _pair(y_true, y_pred)
    return float(np.sqrt(np.mean((a - b) ** 2)))

def mase(y_true: ArrayLike, y_pred: ArrayLike, y_train: ArrayLike, m: int = 1) -> float:
    """MAE scaled by the in-sample MAE of the seasonal naive method with lag ``m``."""
    train = _to_1d(y_train)
    if m < 1 or train.size <= m:
        raise ValueError("y_train must be longer than the seasonal lag m")
    scale = float(np.mean(np.abs(train[m:] - train[:-m])))
    if scale == 0:
        raise ValueError("MASE is undefined for a constant training series")
    return mae(y_true, y_pred) / scale

def accuracy(y_true: ArrayLike, y_pred: ArrayLike, y_train: Optional[ArrayLike] = None, m: int = 1) -> Dict[str, float]:
    out = {
        "mae": mae(y_true, y_pred),
        "rmse": rmse(y_true, y_pred),
        "mape": mape(y_true, y_pred),
    }
    if y_train is not None:
        out["mase"] = mase(y_true, y_pred, y_train, m=m)
    return out

def train_test_split_chronological(y: Union[pd.Series, ArrayLike], test_size: int):
    n = len(y)
    if test_size <= 0 or test_size >= n:
        raise ValueError("test_size must be >0 and < len(y)")
    if isinstance(y, pd.Series):
        return y.iloc[:-test_size], y.iloc[-test_size:]
    arr = _to_1d(y)
    return arr[:-test_size], arr[-test_size:]

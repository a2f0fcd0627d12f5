"""
Figures for the article.

Each function draws one figure, saves it as PNG at ``save_path`` (creating
parent directories) and closes it, so long builds do not accumulate open
figures.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import numpy as np  # noqa: E402
import pandas as pd  # noqa: E402

from .diagnostics import ResidualDiagnostics  # noqa: E402
from .forecasting import ForecastResult  # noqa: E402

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

COLORS = {
    "actual": "#2E86AB",
    "fitted": "#A23B72",
    "forecast": "#C73E1D",
    "interval": "#F18F01",
    "residuals": "#4C566A",
}
FIGSIZE = (10, 5)
DPI = 120


def _x(index: pd.Index):
    """Plottable x values: timestamps for period indexes, raw values otherwise."""
    if isinstance(index, pd.PeriodIndex):
        return index.to_timestamp()
    return index


def _save(fig: plt.Figure, save_path: PathLike) -> Path:
    path = Path(save_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=DPI, bbox_inches="tight")
    plt.close(fig)
    logger.debug(f"Saved figure {path}")
    return path


def plot_series(y: pd.Series, save_path: PathLike, title: str = "", ylabel: str = "") -> Path:
    fig, ax = plt.subplots(figsize=FIGSIZE)
    ax.plot(_x(y.index), y.to_numpy(), color=COLORS["actual"], linewidth=1.5)
    ax.set_title(title)
    ax.set_ylabel(ylabel)
    ax.grid(True, alpha=0.3)
    return _save(fig, save_path)


def plot_forecast(
    y: pd.Series,
    forecast: ForecastResult,
    save_path: PathLike,
    fitted: Optional[pd.Series] = None,
    title: str = "",
    ylabel: str = "",
) -> Path:
    """History, optional in-sample fit, point forecasts and shaded intervals.

    Wider intervals are drawn first so the narrower band stays visible.
    """
    fig, ax = plt.subplots(figsize=FIGSIZE)
    ax.plot(_x(y.index), y.to_numpy(), color=COLORS["actual"], linewidth=1.5, label="Observed")
    if fitted is not None:
        ax.plot(_x(fitted.index), fitted.to_numpy(), color=COLORS["fitted"],
                linewidth=1, linestyle="--", label="Fitted")

    fx = _x(forecast.mean.index)
    levels = sorted(forecast.levels, reverse=True)
    for i, level in enumerate(levels):
        ax.fill_between(
            fx,
            forecast.lower[level].to_numpy(),
            forecast.upper[level].to_numpy(),
            color=COLORS["interval"],
            alpha=0.2 + 0.15 * i,
            linewidth=0,
            label=f"{level}% interval",
        )
    ax.plot(fx, forecast.mean.to_numpy(), color=COLORS["forecast"], linewidth=2, label=forecast.label)

    ax.set_title(title or f"Forecasts from {forecast.label}")
    ax.set_ylabel(ylabel)
    ax.legend(loc="best", fontsize="small")
    ax.grid(True, alpha=0.3)
    return _save(fig, save_path)


def plot_components(components: pd.DataFrame, save_path: PathLike, title: str = "") -> Path:
    """One stacked panel per state (level, trend, season)."""
    if components.empty:
        raise ValueError("No components to plot")
    n = components.shape[1]
    fig, axes = plt.subplots(n, 1, figsize=(FIGSIZE[0], 2.5 * n), sharex=True, squeeze=False)
    x = _x(components.index)
    for ax, name in zip(axes[:, 0], components.columns):
        ax.plot(x, components[name].to_numpy(), color=COLORS["actual"], linewidth=1.2)
        ax.set_ylabel(name)
        ax.grid(True, alpha=0.3)
    axes[0, 0].set_title(title or "Components")
    return _save(fig, save_path)


def plot_residuals(
    residuals: pd.Series,
    diagnostics: ResidualDiagnostics,
    save_path: PathLike,
    title: str = "",
) -> Path:
    """Residual time plot on top, ACF and histogram underneath."""
    resid = residuals.dropna()
    fig = plt.figure(figsize=(FIGSIZE[0], 7))
    grid = fig.add_gridspec(2, 2)
    ax_line = fig.add_subplot(grid[0, :])
    ax_acf = fig.add_subplot(grid[1, 0])
    ax_hist = fig.add_subplot(grid[1, 1])

    ax_line.plot(_x(resid.index), resid.to_numpy(), color=COLORS["residuals"], linewidth=1)
    ax_line.axhline(0, color="black", linewidth=0.8)
    ax_line.set_title(title or (
        f"Residuals (Ljung-Box Q*={diagnostics.statistic:.1f}, "
        f"df={diagnostics.dof}, p={diagnostics.p_value:.3f})"
    ))
    ax_line.grid(True, alpha=0.3)

    lags = np.arange(1, diagnostics.acf.size + 1)
    ax_acf.bar(lags, diagnostics.acf, width=0.3, color=COLORS["residuals"])
    bound = diagnostics.acf_bound
    ax_acf.axhline(bound, color=COLORS["interval"], linestyle="--", linewidth=1)
    ax_acf.axhline(-bound, color=COLORS["interval"], linestyle="--", linewidth=1)
    ax_acf.axhline(0, color="black", linewidth=0.8)
    ax_acf.set_xlabel("lag")
    ax_acf.set_ylabel("ACF")

    ax_hist.hist(resid.to_numpy(), bins="auto", color=COLORS["residuals"], alpha=0.8)
    ax_hist.set_xlabel("residual")
    ax_hist.set_ylabel("count")

    fig.tight_layout()
    return _save(fig, save_path)

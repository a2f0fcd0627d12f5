"""
Command line entry point: ``ets-article``.

    ets-article datasets
    ets-article fetch [NAME ...] [--force]
    ets-article forecast NAME --model KEY [--horizon H] [--plot PATH]
    ets-article select NAME
    ets-article build [--output DIR]
    ets-article lint MARKDOWN [HTML]
"""

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from .article import ArticleBuilder, default_article
from .config import Settings
from .datasets import DatasetLoader
from .exceptions import EtsArticleError
from .forecasting import MODEL_KEYS, build_forecaster
from .lint import lint_article
from .logging_config import setup_logging
from .plotting import plot_forecast
from .selection import select_ets

logger = logging.getLogger(__name__)


def _loader(settings: Settings) -> DatasetLoader:
    return DatasetLoader(settings.data_dir, base_url=settings.data_base_url,
                         timeout=settings.request_timeout, verbose=True)


def cmd_datasets(args, settings: Settings) -> int:
    loader = _loader(settings)
    for name in loader.list_datasets():
        spec = loader.spec(name)
        cached = "cached" if loader.path_for(name).exists() else "remote"
        print(f"{name:<12} freq={spec.frequency:<3} {cached:<7} {spec.description}")
    return 0


def cmd_fetch(args, settings: Settings) -> int:
    loader = _loader(settings)
    for name in args.names or loader.list_datasets():
        path = loader.download(name, force=args.force)
        print(path)
    return 0


def cmd_forecast(args, settings: Settings) -> int:
    horizon = args.horizon if args.horizon is not None else settings.horizon
    if horizon < 1:
        raise ValueError(f"horizon must be >= 1, got {horizon}")
    loader = _loader(settings)
    y = loader.load(args.name)
    spec = loader.spec(args.name)
    model = build_forecaster(args.model, seasonal_periods=spec.frequency).fit(y)
    fc = model.forecast(horizon)
    print(f"{model.label} on {args.name}")
    for key, value in model.summary().items():
        print(f"  {key}: {value}")
    print(fc.to_frame().round(3).to_string())
    if args.plot:
        plot_forecast(y, fc, args.plot, title=f"{spec.description}: forecasts from {fc.label}",
                      ylabel=spec.units)
        logger.info(f"Saved plot to {args.plot}")
    return 0


def cmd_select(args, settings: Settings) -> int:
    loader = _loader(settings)
    y = loader.load(args.name)
    result = select_ets(y, seasonal_periods=loader.spec(args.name).frequency, criterion=args.criterion)
    print(f"Selected {result.label} by {result.criterion}")
    print(result.table.to_string(index=False))
    return 0


def cmd_build(args, settings: Settings) -> int:
    output = Path(args.output) if args.output else settings.output_dir
    builder = ArticleBuilder(_loader(settings), output)
    result = builder.build(default_article())
    print(result.markdown_path)
    print(result.html_path)
    issues = lint_article(result.markdown_path, result.html_path)
    return 1 if issues else 0


def cmd_lint(args, settings: Settings) -> int:
    issues = lint_article(args.markdown, args.html)
    for issue in issues:
        print(issue)
    if not issues:
        print("ok")
    return 1 if issues else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ets-article", description="Exponential smoothing article tooling")
    parser.add_argument("--log-level", default=None, help="Logging level (default from ETS_LOG_LEVEL)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("datasets", help="List the registered datasets")
    p.set_defaults(func=cmd_datasets)

    p = sub.add_parser("fetch", help="Download datasets into the data directory")
    p.add_argument("names", nargs="*", help="Datasets to fetch (default: all)")
    p.add_argument("--force", action="store_true", help="Re-download even when cached")
    p.set_defaults(func=cmd_fetch)

    p = sub.add_parser("forecast", help="Fit one model and print its forecasts")
    p.add_argument("name")
    p.add_argument("--model", default="auto", help=f"One of: {', '.join(MODEL_KEYS)}")
    p.add_argument("--horizon", type=int, default=None)
    p.add_argument("--plot", default=None, help="Write a forecast plot to this PNG path")
    p.set_defaults(func=cmd_forecast)

    p = sub.add_parser("select", help="Rank ETS models by information criterion")
    p.add_argument("name")
    p.add_argument("--criterion", default="aicc", choices=["aicc", "aic", "bic"])
    p.set_defaults(func=cmd_select)

    p = sub.add_parser("build", help="Build the article (markdown, HTML, images)")
    p.add_argument("--output", default=None, help="Output directory (default from ETS_OUTPUT_DIR)")
    p.set_defaults(func=cmd_build)

    p = sub.add_parser("lint", help="Check front matter, images and markdown/HTML consistency")
    p.add_argument("markdown")
    p.add_argument("html", nargs="?", default=None)
    p.set_defaults(func=cmd_lint)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = Settings.from_env()
    except ValueError as e:
        setup_logging(args.log_level)
        logger.error(f"Invalid configuration: {e}")
        return 1
    setup_logging(args.log_level or settings.log_level)
    try:
        return args.func(args, settings)
    except (EtsArticleError, ValueError) as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional

from .analysis import DEFAULT_API_PATH, LEGACY_API_PATH, AnalysisClient, ClientConfigurationError
from .settings import API_BASE_ENV, Settings, SettingsError, load_settings


def build_client(settings: Settings) -> AnalysisClient:
    return AnalysisClient(
        base_url=settings.api_base,
        api_path=settings.api_path,
        timeout=settings.timeout,
    )


def configure_logging(log_file: Optional[Path], level: str) -> None:
    # The full-screen UI owns the terminal, so logs only ever go to a file.
    if log_file is None:
        return
    logging.basicConfig(
        filename=str(log_file.expanduser()),
        level=getattr(logging, level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def cli_overrides(args: argparse.Namespace) -> dict:
    overrides = {
        "api_base": args.api_base,
        "api_path": LEGACY_API_PATH if args.legacy_path else args.api_path,
        "min_cluster_size": args.min_cluster_size,
        "timeout": args.timeout,
        "message_limit": args.message_limit,
        "noise_sample_limit": args.noise_sample_limit,
    }
    if args.no_topic_model:
        overrides["use_topic_model"] = False
    return overrides


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="git-archaeologist",
        description="Browse topical clusters of a GitHub repository's commit messages.",
    )
    p.add_argument(
        "url",
        nargs="?",
        default="",
        help="Repository URL to prefill (e.g. https://github.com/owner/repo)",
    )
    p.add_argument(
        "--config",
        type=Path,
        help="YAML settings file (default: ~/.config/git-archaeologist/config.yml)",
    )
    p.add_argument(
        "--api-base",
        help=f"Base URL of the analysis service (default: ${API_BASE_ENV} or http://localhost:8000)",
    )
    path_group = p.add_mutually_exclusive_group()
    path_group.add_argument(
        "--api-path",
        help=f"Path of the analyze endpoint (default: {DEFAULT_API_PATH})",
    )
    path_group.add_argument(
        "--legacy-path",
        action="store_true",
        help=f"Use the older {LEGACY_API_PATH} endpoint",
    )
    p.add_argument(
        "--no-topic-model",
        action="store_true",
        help="Ask the service to skip topic modelling (sends use_bertopic=false)",
    )
    p.add_argument(
        "--min-cluster-size",
        type=int,
        help="Smallest grouping the service should keep (default: 8)",
    )
    p.add_argument(
        "--timeout",
        type=float,
        help="Seconds to wait for the analysis service (default: 300)",
    )
    p.add_argument(
        "--message-limit",
        type=int,
        help="Commit messages shown per cluster before expanding (default: 10)",
    )
    p.add_argument(
        "--noise-sample-limit",
        type=int,
        help="Unclustered messages shown in the noise sample (default: 40)",
    )
    p.add_argument("--log-file", type=Path, help="Write debug logs to this file")
    p.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default="info",
        help="Log level used with --log-file (default: info)",
    )
    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_file, args.log_level)

    try:
        settings = load_settings(args.config, cli_overrides(args))
    except SettingsError as exc:
        parser.error(str(exc))
        return 2

    try:
        client = build_client(settings)
    except ClientConfigurationError as exc:
        parser.error(f"Failed to initialise analysis client: {exc}")
        return 2

    from .browser import browse_repository

    with client:
        return browse_repository(client, settings, initial_url=args.url)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

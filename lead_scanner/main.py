"""Main entry point for the Company Lead Scanner."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import signal
import sys
import threading
import time
from datetime import date
from pathlib import Path
from typing import List, Optional, TextIO, Tuple

from pydantic import ValidationError

from lead_scanner.adapters import check_credentials
from lead_scanner.adapters.exceptions import AdapterConfigurationError
from lead_scanner.config.environment import EnvironmentConfig
from lead_scanner.config.exceptions import ConfigurationError
from lead_scanner.config.loader import format_validation_errors, load_config
from lead_scanner.config.models import AppConfig, SourceType
from lead_scanner.domain.models import MAX_DAYS, ScrapeOptions
from lead_scanner.export import ExportError, write_export
from lead_scanner.logging import get_logger
from lead_scanner.logging.config import configure_logging
from lead_scanner.pipeline import PipelineRunResult, ScanPipeline
from lead_scanner.scheduler import SchedulerService
from lead_scanner.utils.timestamps import utc_now

logger = get_logger(__name__, component="cli")

SUMMARY_SIZE = 10
HIGH_SCORE = 60


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lead-scanner",
        description="Company Lead Scanner - find newly registered companies without a website",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml, then config/config.yaml)",
    )
    parser.add_argument("--days", type=int, default=None, help="Keep companies created in the last N days")
    parser.add_argument("--limit", type=int, default=None, help="Maximum number of companies exported")
    parser.add_argument("--dept", default=None, help="Scan a single department code (e.g. 44)")
    parser.add_argument("--city", default=None, help="Only keep companies located in this city")
    parser.add_argument(
        "--source",
        default=None,
        choices=[source_type.value for source_type in SourceType],
        help="Only use this configured source",
    )
    parser.add_argument("--output-dir", default=None, help="Directory for the CSV export")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    parser.add_argument(
        "--schedule",
        action="store_true",
        help="Keep running and rescan every scan_interval",
    )
    return parser


def load_runtime_config(
    config_path: Optional[Path],
    log_level_override: Optional[str] = None,
    source_override: Optional[str] = None,
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and apply command-line overrides.

    Log level priority: CLI > LOG_LEVEL > config file.

    Raises:
        ConfigurationError: If configuration is invalid or the requested source
            is not configured
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level

    if source_override:
        app_config = restrict_sources(app_config, source_override)

    return app_config, env_config


def restrict_sources(app_config: AppConfig, source_type: str) -> AppConfig:
    """Return a copy of the config with only the given source enabled."""
    source = app_config.get_source_by_type(source_type)
    if source is None:
        configured = ", ".join(s.type for s in app_config.sources)
        raise ConfigurationError(
            f"Source '{source_type}' is not configured",
            errors=[f"Configured sources: {configured}"],
            suggestions=[f"Add a '{source_type}' entry under sources in config.yaml"],
        )
    return app_config.model_copy(
        update={"sources": [source.model_copy(update={"enabled": True})]}
    )


def build_options(args: argparse.Namespace, app_config: AppConfig) -> ScrapeOptions:
    """Merge CLI flags with configured defaults.

    Raises:
        ConfigurationError: If a value is out of range
    """
    try:
        return ScrapeOptions(
            days=args.days if args.days is not None else app_config.defaults.days,
            limit=args.limit if args.limit is not None else app_config.defaults.limit,
            partition=args.dept,
            city=args.city,
        )
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid scan options",
            errors=format_validation_errors(e),
            suggestions=[
                f"--days must be between 1 and {MAX_DAYS}",
                "--limit must be a positive integer",
            ],
        ) from e


def resolve_output_dir(
    cli_value: Optional[str], env_config: EnvironmentConfig, app_config: AppConfig
) -> Path:
    """Output directory priority: CLI > OUTPUT_DIR > config file."""
    return Path(cli_value or env_config.output_dir or app_config.export.output_dir)


def run_scan(
    pipeline: ScanPipeline,
    app_config: AppConfig,
    options: ScrapeOptions,
    output_dir: Path,
    cancel_event: Optional[threading.Event] = None,
    today: Optional[date] = None,
) -> Tuple[PipelineRunResult, Optional[Path]]:
    """
    Run the pipeline once and export the ranked companies.

    Returns:
        The run result and the export path (None when nothing was exported)

    Raises:
        ExportError: If the export file cannot be written
    """
    result = pipeline.run(options, cancel_event=cancel_event)
    if result.skipped or not result.companies:
        return result, None

    path = write_export(
        result.companies,
        output_dir=output_dir,
        label=options.partition or app_config.region_label,
        day=today or utc_now().date(),
        literal_has_website=app_config.export.literal_has_website,
    )
    return result, path


def print_summary(
    result: PipelineRunResult,
    options: ScrapeOptions,
    export_path: Optional[Path],
    today: Optional[date] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """Print the top of the ranking in a human-readable form."""
    today = today or utc_now().date()
    companies = result.companies
    lines: List[str] = []

    status = " (cancelled, partial results)" if result.cancelled else ""
    lines.append(f"Scan complete in {result.total_duration_seconds:.1f}s{status}")
    lines.append(f"Companies created in the last {options.days} days: {len(companies)}")
    lines.append(f"High score ({HIGH_SCORE}+): {sum(1 for c in companies if c.score >= HIGH_SCORE)}")

    if not companies:
        lines.append("No recent company found. Try a wider window, e.g. --days 90, or --dept 44.")
    else:
        lines.append("")
        lines.append(f"Top {min(SUMMARY_SIZE, len(companies))} leads:")
        for rank, company in enumerate(companies[:SUMMARY_SIZE], 1):
            age_days = (today - company.created_at).days
            website = company.website_url if company.has_website else "no website"
            lines.append(f"{rank:>3}. [{company.score:>3}/100] {company.name}")
            lines.append(f"     {company.location or 'unknown location'} | {company.sector_label}")
            lines.append(f"     {age_days} days ago | {website} | SIREN {company.registry_id}")

    if export_path:
        lines.append("")
        lines.append(f"Exported: {export_path}")

    print("\n".join(lines), file=stream or sys.stdout)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the Company Lead Scanner.

    Returns:
        Exit code (0 for success, 1 for configuration, credential or export errors).
    """
    start_time = time.time()
    args = build_parser().parse_args(argv)
    cancel_event = threading.Event()

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level, args.source)

        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment,
        )

        options = build_options(args, app_config)
        output_dir = resolve_output_dir(args.output_dir, env_config, app_config)

        logger.info(
            "Company Lead Scanner starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "schedule": args.schedule,
                "partition": options.partition,
                "sources": [s.type for s in app_config.get_enabled_sources()],
            },
        )

        pipeline = ScanPipeline(app_config=app_config, env_config=env_config)

        if args.schedule:
            return _run_scheduled(pipeline, app_config, options, output_dir, cancel_event, start_time)

        def signal_handler(signum, frame):
            logger.info(
                f"Received signal {signum}, cancelling scan",
                extra={"event": "service.signal_received", "signal": signum},
            )
            cancel_event.set()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        result, export_path = run_scan(pipeline, app_config, options, output_dir, cancel_event)
        print_summary(result, options, export_path)

        logger.info(
            "Company Lead Scanner stopped",
            extra={
                "event": "service.stopping",
                "uptime_seconds": round(time.time() - start_time, 2),
                "returned": len(result.companies),
                "cancelled": result.cancelled,
            },
        )
        return 0

    except (ConfigurationError, AdapterConfigurationError) as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e}",
            extra={"event": "config.error", "error_type": type(e).__name__},
        )
        return 1
    except ExportError as e:
        print(f"Export Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0


def _run_scheduled(
    pipeline: ScanPipeline,
    app_config: AppConfig,
    options: ScrapeOptions,
    output_dir: Path,
    shutdown_event: threading.Event,
    start_time: float,
) -> int:
    """Run scans on the configured interval until a signal or a fatal error.

    Missing credentials are reported before the scheduler starts. A
    configuration or export error raised by a scheduled scan stops the daemon
    and is re-raised here so main() exits with 1; upstream failures stay
    per-partition and the next interval retries.
    """
    check_credentials(app_config.get_enabled_sources(), pipeline.env_config)

    fatal: List[Exception] = []

    def scan() -> None:
        try:
            result, export_path = run_scan(pipeline, app_config, options, output_dir, shutdown_event)
        except (ConfigurationError, ExportError) as e:
            logger.error(
                f"Scheduled scan cannot continue: {e}",
                extra={"event": "service.scheduled_scan.fatal", "error_type": type(e).__name__},
            )
            fatal.append(e)
            shutdown_event.set()
            return
        logger.info(
            "Scheduled scan completed",
            extra={
                "event": "service.scheduled_scan.completed",
                "returned": len(result.companies),
                "export_path": str(export_path) if export_path else None,
                "cancelled": result.cancelled,
            },
        )

    scheduler_service = SchedulerService(
        scan_callable=scan,
        interval_seconds=app_config.scan_interval_seconds,
        shutdown_event=shutdown_event,
    )

    def signal_handler(signum, frame):
        logger.info(
            f"Received signal {signum}, shutting down",
            extra={"event": "service.signal_received", "signal": signum},
        )
        scheduler_service.shutdown(wait=False)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    scheduler_service.start()
    logger.info(
        "Scheduler started. Press Ctrl+C to stop",
        extra={"event": "service.daemon_mode.started"},
    )

    try:
        shutdown_event.wait()
    except KeyboardInterrupt:
        pass
    scheduler_service.shutdown(wait=False)

    logger.info(
        "Company Lead Scanner stopped",
        extra={"event": "service.stopping", "uptime_seconds": round(time.time() - start_time, 2)},
    )
    if fatal:
        raise fatal[0]
    return 0


if __name__ == "__main__":
    sys.exit(main())

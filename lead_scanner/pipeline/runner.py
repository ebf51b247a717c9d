"""Pipeline orchestration for company discovery and ranking."""

import threading
import time
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple
from uuid import uuid4

from lead_scanner.adapters.exceptions import AdapterError
from lead_scanner.adapters.factory import check_credentials, get_adapter
from lead_scanner.config.environment import EnvironmentConfig
from lead_scanner.config.models import AppConfig, SourceConfig
from lead_scanner.domain.models import Company, RawRecord, ScrapeOptions
from lead_scanner.logging import get_logger
from lead_scanner.logging.context import log_context
from lead_scanner.normalization.service import CompanyNormalizer
from lead_scanner.probe.service import LivenessProbe
from lead_scanner.scoring.service import OpportunityScorer
from lead_scanner.utils.timestamps import utc_now

from .models import PartitionRunStats, PipelineRunResult

logger = get_logger(__name__, component="pipeline")


class ScanPipeline:
    """
    Orchestrates a single scan across partitions and enabled sources.

    For every partition (department), each enabled source is paged through,
    its records normalized, filtered by city, probed for a live website and
    scored. The merged result is deduplicated by registry id (first
    occurrence wins), cut to the recency window, ranked by score and
    truncated to the requested limit.
    """

    def __init__(
        self,
        app_config: AppConfig,
        env_config: EnvironmentConfig,
        probe: Optional[LivenessProbe] = None,
        scorer: Optional[OpportunityScorer] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the scan pipeline.

        Args:
            app_config: Application configuration
            env_config: Environment configuration
            probe: Website liveness probe (built from app_config.probe if omitted)
            scorer: Opportunity scorer (built from app_config.scoring if omitted)
            clock: Source of the evaluation time
        """
        self.app_config = app_config
        self.env_config = env_config
        self.probe = probe or LivenessProbe(
            timeout=app_config.probe.timeout_seconds,
            user_agent=app_config.advanced.user_agents[0],
            fallback_to_http=app_config.probe.fallback_to_http,
            max_workers=app_config.probe.max_workers,
        )
        self.scorer = scorer or OpportunityScorer(app_config.scoring)
        self.clock = clock
        self._lock = threading.Lock()

    def run(
        self,
        options: Optional[ScrapeOptions] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> PipelineRunResult:
        """
        Execute a complete scan.

        Partition-level upstream failures are logged and counted; the
        partition contributes nothing and the run continues. When
        ``cancel_event`` is set, the partition in flight is discarded and the
        completed partitions are post-processed and returned with
        ``cancelled=True``.

        Returns:
            PipelineRunResult with the ranked companies and per-partition stats

        Raises:
            ConfigurationError: If a source cannot be built (e.g. missing credential)
        """
        options = options or ScrapeOptions(
            days=self.app_config.defaults.days, limit=self.app_config.defaults.limit
        )
        cancel_event = cancel_event or threading.Event()
        run_started_at = utc_now()
        run_id = uuid4().hex

        if not self._lock.acquire(blocking=False):
            with log_context(run_id=run_id):
                logger.warning(
                    "Pipeline run skipped: previous run still in progress",
                    extra={"event": "pipeline.run.skipped", "reason": "lock_held"},
                )
            return PipelineRunResult(
                run_started_at=run_started_at,
                run_finished_at=utc_now(),
                run_id=run_id,
                skipped=True,
            )

        try:
            with log_context(run_id=run_id):
                return self._run(options, cancel_event, run_id, run_started_at)
        finally:
            self._lock.release()

    def _run(
        self,
        options: ScrapeOptions,
        cancel_event: threading.Event,
        run_id: str,
        run_started_at: datetime,
    ) -> PipelineRunResult:
        sources = self.app_config.get_enabled_sources()
        check_credentials(sources, self.env_config)

        now = self.clock()
        normalizer = CompanyNormalizer(self.app_config.sector_labels, now=now)
        partitions = [options.partition] if options.partition else list(self.app_config.partitions)
        delay = self.app_config.advanced.partition_delay_seconds

        logger.info(
            "Pipeline run started",
            extra={
                "event": "pipeline.run.started",
                "partitions": partitions,
                "sources": [source.type for source in sources],
                "days": options.days,
                "limit": options.limit,
                "city": options.city,
            },
        )

        collected: List[Company] = []
        partition_stats: List[PartitionRunStats] = []
        cancelled = False

        for index, partition in enumerate(partitions):
            if cancel_event.is_set():
                cancelled = True
                break
            if index > 0 and delay > 0 and cancel_event.wait(delay):
                cancelled = True
                break

            in_flight: List[Company] = []
            interrupted = False
            for source_config in sources:
                companies, stats = self._process_partition(
                    partition, source_config, options, normalizer, now, cancel_event
                )
                partition_stats.append(stats)
                if stats.cancelled:
                    interrupted = True
                    break
                in_flight.extend(companies)

            if interrupted:
                logger.warning(
                    "Run cancelled, discarding partition in flight",
                    extra={
                        "event": "pipeline.partition.discarded",
                        "partition": partition,
                        "discarded": len(in_flight),
                    },
                )
                cancelled = True
                break

            collected.extend(in_flight)

        ranked, duplicates, outdated = self._rank(collected, options, now)

        result = PipelineRunResult(
            run_started_at=run_started_at,
            run_finished_at=utc_now(),
            run_id=run_id,
            partition_stats=partition_stats,
            companies=ranked,
            duplicates_removed=duplicates,
            outdated_removed=outdated,
            cancelled=cancelled,
        )

        logger.info(
            "Pipeline run completed",
            extra={
                "event": "pipeline.run.cancelled" if cancelled else "pipeline.run.completed",
                "duration_ms": int(result.total_duration_seconds * 1000),
                "total_fetched": result.total_fetched,
                "total_normalized": result.total_normalized,
                "total_dropped": result.total_dropped,
                "duplicates_removed": duplicates,
                "outdated_removed": outdated,
                "returned": len(ranked),
                "total_errors": result.total_errors,
                "had_errors": result.had_errors,
            },
        )

        return result

    def _process_partition(
        self,
        partition: str,
        source_config: SourceConfig,
        options: ScrapeOptions,
        normalizer: CompanyNormalizer,
        now: datetime,
        cancel_event: threading.Event,
    ) -> Tuple[List[Company], PartitionRunStats]:
        """
        Fetch, normalize, filter, probe and score one partition from one source.

        Returns:
            Scored companies in upstream order, and the partition's stats
        """
        partition_start = time.time()
        stats = PartitionRunStats(partition=partition, source=source_config.type)

        with log_context(partition=partition, source=source_config.type):
            logger.info(
                f"Processing partition {partition}",
                extra={"event": "partition.run.started"},
            )

            try:
                fetched = self._fetch(partition, source_config, options, stats, cancel_event)
                if fetched is None:
                    return [], stats
                raw_records, source_kind = fetched

                companies = self._normalize(raw_records, source_kind, options, normalizer, stats)

                companies = self._probe(companies, stats, cancel_event)
                if cancel_event.is_set():
                    stats.cancelled = True
                    return [], stats

                scored = [
                    company.model_copy(update={"score": self.scorer.score(company, now)})
                    for company in companies
                ]
                stats.scored_count = len(scored)
                return scored, stats

            finally:
                stats.duration_seconds = time.time() - partition_start
                logger.info(
                    f"Partition {partition} processed",
                    extra={
                        "event": "partition.run.completed",
                        "pages": stats.pages_fetched,
                        "fetched": stats.fetched_count,
                        "normalized": stats.normalized_count,
                        "dropped": stats.dropped_count,
                        "filtered": stats.filtered_count,
                        "probed": stats.probed_count,
                        "reachable": stats.reachable_count,
                        "scored": stats.scored_count,
                        "had_errors": stats.had_errors,
                        "cancelled": stats.cancelled,
                        "duration_seconds": round(stats.duration_seconds, 3),
                    },
                )

    def _fetch(
        self,
        partition: str,
        source_config: SourceConfig,
        options: ScrapeOptions,
        stats: PartitionRunStats,
        cancel_event: threading.Event,
    ) -> Optional[Tuple[List[RawRecord], str]]:
        """Page through the partition; None when it failed or was cancelled."""
        adapter = get_adapter(
            source_config, self.app_config, self.env_config, options, cancel_event
        )
        raw_records: List[RawRecord] = []
        try:
            for page in adapter.iter_partition(partition):
                stats.pages_fetched += 1
                raw_records.extend(page.records)
        except AdapterError as e:
            if cancel_event.is_set():
                stats.cancelled = True
                return None
            stats.had_errors = True
            stats.error_count += 1
            stats.error_message = str(e)
            logger.error(
                f"Partition {partition} failed: {e}",
                extra={
                    "event": "partition.fetch.failed",
                    "error_type": type(e).__name__,
                    "error": str(e),
                    "pages_fetched": stats.pages_fetched,
                    "records_discarded": len(raw_records),
                },
            )
            return None
        finally:
            adapter.close()

        if cancel_event.is_set():
            stats.cancelled = True
            return None

        stats.fetched_count = len(raw_records)
        return raw_records, adapter.SOURCE_KIND

    def _normalize(
        self,
        raw_records: List[RawRecord],
        source_kind: str,
        options: ScrapeOptions,
        normalizer: CompanyNormalizer,
        stats: PartitionRunStats,
    ) -> List[Company]:
        wanted_city = options.city.casefold() if options.city else None
        companies = []
        for raw in raw_records:
            company = normalizer.normalize(raw, source_kind)
            if company is None:
                stats.dropped_count += 1
                continue
            stats.normalized_count += 1

            if wanted_city is not None and (company.city or "").casefold() != wanted_city:
                stats.filtered_count += 1
                continue
            companies.append(company)
        return companies

    def _probe(
        self,
        companies: List[Company],
        stats: PartitionRunStats,
        cancel_event: threading.Event,
    ) -> List[Company]:
        """Confirm claimed websites; only unconfirmed URLs are probed."""
        urls = [c.website_url for c in companies if c.website_url and not c.has_website]
        if not urls:
            return companies

        results = self.probe.probe_many(urls, cancel_event=cancel_event)
        stats.probed_count = len(results)
        stats.reachable_count = sum(results.values())

        return [
            company.model_copy(update={"has_website": True})
            if not company.has_website and results.get(company.website_url)
            else company
            for company in companies
        ]

    def _rank(
        self,
        companies: List[Company],
        options: ScrapeOptions,
        now: datetime,
    ) -> Tuple[List[Company], int, int]:
        """Dedupe, apply the recency cutoff, sort by score and truncate.

        Returns:
            Ranked companies, number of duplicates removed, number of outdated removed
        """
        seen = set()
        unique = []
        for company in companies:
            if company.registry_id in seen:
                continue
            seen.add(company.registry_id)
            unique.append(company)

        cutoff = now.date() - timedelta(days=options.days)
        recent = [company for company in unique if company.created_at >= cutoff]

        # sorted() is stable, so equal scores keep upstream order
        ranked = sorted(recent, key=lambda company: company.score, reverse=True)

        return (
            ranked[: options.limit],
            len(companies) - len(unique),
            len(unique) - len(recent),
        )

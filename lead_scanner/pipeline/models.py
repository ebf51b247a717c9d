"""Data models for pipeline execution tracking and reporting."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from lead_scanner.domain.models import Company


@dataclass
class PartitionRunStats:
    """
    Statistics for one (partition, source) pass within a pipeline run.

    Attributes:
        partition: Department code
        source: Source type that was queried
        pages_fetched: Number of upstream pages retrieved
        fetched_count: Raw records returned by the adapter
        normalized_count: Records turned into companies
        dropped_count: Records rejected by the normalizer
        filtered_count: Companies removed by the city filter
        probed_count: Websites probed
        reachable_count: Websites confirmed live
        scored_count: Companies scored and handed to the aggregator
        error_count: Number of errors encountered
        duration_seconds: Time spent on this partition
        had_errors: Whether the partition failed
        cancelled: Whether the run was cancelled while this partition was in flight
        error_message: Optional error message if the partition failed
    """

    partition: str
    source: str
    pages_fetched: int = 0
    fetched_count: int = 0
    normalized_count: int = 0
    dropped_count: int = 0
    filtered_count: int = 0
    probed_count: int = 0
    reachable_count: int = 0
    scored_count: int = 0
    error_count: int = 0
    duration_seconds: float = 0.0
    had_errors: bool = False
    cancelled: bool = False
    error_message: Optional[str] = None


@dataclass
class PipelineRunResult:
    """
    Aggregate results from a complete pipeline execution.

    Attributes:
        run_started_at: UTC timestamp when the run began
        run_finished_at: UTC timestamp when the run completed
        run_id: Identifier shared by every log line of the run
        total_duration_seconds: Total time for the entire run
        total_fetched: Raw records fetched across all partitions
        total_normalized: Companies produced by the normalizer
        total_dropped: Records rejected by the normalizer
        total_reachable: Websites confirmed live
        total_errors: Total errors encountered
        duplicates_removed: Companies dropped because their registry id was already seen
        outdated_removed: Companies dropped by the creation-date cutoff
        partition_stats: Per-partition execution statistics
        companies: Final ranked list (deduplicated, recent, sorted, truncated)
        had_errors: Whether any partition encountered errors
        skipped: Whether the run was skipped (lock already held)
        cancelled: Whether the run was cut short; companies then cover the
            partitions completed before cancellation
    """

    run_started_at: datetime
    run_finished_at: datetime
    run_id: Optional[str] = None
    total_duration_seconds: float = 0.0
    total_fetched: int = 0
    total_normalized: int = 0
    total_dropped: int = 0
    total_reachable: int = 0
    total_errors: int = 0
    duplicates_removed: int = 0
    outdated_removed: int = 0
    partition_stats: List[PartitionRunStats] = field(default_factory=list)
    companies: List[Company] = field(default_factory=list)
    had_errors: bool = False
    skipped: bool = False
    cancelled: bool = False

    def __post_init__(self):
        """Compute aggregate statistics from partition stats if not already set."""
        if self.partition_stats and self.total_fetched == 0:
            self.total_fetched = sum(s.fetched_count for s in self.partition_stats)
            self.total_normalized = sum(s.normalized_count for s in self.partition_stats)
            self.total_dropped = sum(s.dropped_count for s in self.partition_stats)
            self.total_reachable = sum(s.reachable_count for s in self.partition_stats)
            self.total_errors = sum(s.error_count for s in self.partition_stats)
            self.had_errors = any(s.had_errors for s in self.partition_stats)

        if self.total_duration_seconds == 0.0:
            delta = self.run_finished_at - self.run_started_at
            self.total_duration_seconds = delta.total_seconds()

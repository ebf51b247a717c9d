"""Pipeline orchestration for company discovery, probing, scoring and ranking."""

from .models import PartitionRunStats, PipelineRunResult
from .runner import ScanPipeline

__all__ = [
    "ScanPipeline",
    "PipelineRunResult",
    "PartitionRunStats",
]

"""Pure domain services (validation and statistics)."""

from .argument_validator import ensure_metric_name, ensure_positive
from .statistics_calculator import nearest_rank_percentile, summarize

__all__ = [
    "ensure_metric_name",
    "ensure_positive",
    "nearest_rank_percentile",
    "summarize",
]

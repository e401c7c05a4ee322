"""
Analytics

Aggregated views over test history.
"""

from src.agenttest.analytics.aggregator import AnalyticsAggregator, AnalyticsConfig
from src.agenttest.analytics.stats import metric_stats, percentile

__all__ = [
    "AnalyticsAggregator",
    "AnalyticsConfig",
    "metric_stats",
    "percentile",
]

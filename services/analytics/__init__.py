from .engine import AnalyticsService, months_ago, round_half_up

__all__ = [
    "AnalyticsService",
    "months_ago",
    "round_half_up",
]

"""Refresh scheduling for the compliance sync engine."""

from nyc_compliance.scheduler.refresh import (
    ChangeNotificationBus,
    RefreshScheduler,
    Ticker,
    is_within_business_hours,
)

__all__ = [
    "ChangeNotificationBus",
    "RefreshScheduler",
    "Ticker",
    "is_within_business_hours",
]

"""Treasury data models."""

from custody.models.treasury import (
    DAILY_WINDOW_SECONDS,
    MAX_QUANTITY,
    MAX_TENANT_ID,
    UNLIMITED,
    DisbursementPlan,
    DisbursementRecord,
    Limits,
    QueueEntry,
    RevenueSplit,
)

__all__ = [
    "DAILY_WINDOW_SECONDS",
    "MAX_QUANTITY",
    "MAX_TENANT_ID",
    "UNLIMITED",
    "DisbursementPlan",
    "DisbursementRecord",
    "Limits",
    "QueueEntry",
    "RevenueSplit",
]

"""Revenue split between tenants and the operator."""

from custody.revenue.splitter import FeeSchedule, split

__all__ = ["FeeSchedule", "split"]

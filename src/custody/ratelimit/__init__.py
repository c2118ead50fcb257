"""Disbursement rate limiting — recipient history queues and cap enforcement."""

from custody.ratelimit.guard import CapBook, DisbursementGuard
from custody.ratelimit.queue import QueueBook, RateLimitQueue

__all__ = ["CapBook", "DisbursementGuard", "QueueBook", "RateLimitQueue"]

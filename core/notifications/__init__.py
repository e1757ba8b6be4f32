"""
Fleet notifications: pings, updates and the upcoming-fleets list.

Public API:
    run_dispatch_tick(store, transport, now) - Send everything that is due
    publish_summaries(store, transport, directory, now) - Repost fleet lists
    init_scheduler() / shutdown_scheduler() - Run both on an interval
"""

from .dispatcher import plan_deliveries, process_fleet, run_dispatch_tick
from .render import FleetMessage, render_notification, render_summary
from .scheduler import (
    get_retry_delay,
    init_scheduler,
    shutdown_scheduler,
)
from .summary import publish_summaries

__all__ = [
    "run_dispatch_tick",
    "process_fleet",
    "plan_deliveries",
    "publish_summaries",
    "FleetMessage",
    "render_notification",
    "render_summary",
    "init_scheduler",
    "shutdown_scheduler",
    "get_retry_delay",
]

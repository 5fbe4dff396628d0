"""Helpers for keeping endpoint statuses in memory."""

from __future__ import annotations

import time
from datetime import datetime, timedelta

from .common import MAXIMUM_NUMBER_OF_EVENTS, MAXIMUM_NUMBER_OF_RESULTS
from .models import EndpointStatus, Event, HourlyUptimeStatistics, Result, Uptime
from .paging import EndpointStatusParams

_HOUR_SECONDS = 3600
_NUMBER_OF_HOURS_IN_TEN_DAYS = 10 * 24
_SEVEN_DAYS_SECONDS = 7 * 24 * _HOUR_SECONDS


def _hour_of(moment: datetime) -> int:
    """Return the unix timestamp of the start of the hour holding ``moment``."""
    return int(moment.timestamp() // _HOUR_SECONDS) * _HOUR_SECONDS


def _milliseconds(duration: timedelta) -> int:
    return int(duration / timedelta(milliseconds=1))


def _page_bounds(count: int, page: int, page_size: int) -> slice | None:
    if page < 1 or page_size < 0:
        return None
    start = count - page * page_size
    end = count - (page - 1) * page_size
    if start > count:
        return None
    start = max(start, 0)
    end = min(end, count)
    if end < 0:
        return None
    return slice(start, end)


def _page(items: list, page: int, page_size: int) -> list:
    bounds = _page_bounds(len(items), page, page_size)
    return [] if bounds is None else items[bounds]


def shallow_copy_endpoint_status(
    status: EndpointStatus, params: EndpointStatusParams
) -> EndpointStatus:
    """Copy a status, keeping only the results and events on the requested pages.

    Page 1 holds the most recent entries; entries within a page stay oldest first.
    """
    return EndpointStatus(
        name=status.name,
        group=status.group,
        key=status.key,
        results=_page(status.results, params.results_page, params.results_page_size),
        events=_page(status.events, params.events_page, params.events_page_size),
        uptime=Uptime(),
    )


def add_result(status: EndpointStatus | None, result: Result) -> None:
    """Record a result, adding an event whenever the health changes.

    Results and events are capped at their maximum counts, oldest dropped first.
    """
    if status is None:
        return
    if not status.results or status.results[-1].success != result.success:
        status.events.append(Event.from_result(result))
        if len(status.events) > MAXIMUM_NUMBER_OF_EVENTS:
            del status.events[: len(status.events) - MAXIMUM_NUMBER_OF_EVENTS]
    status.results.append(result)
    if len(status.results) > MAXIMUM_NUMBER_OF_RESULTS:
        del status.results[: len(status.results) - MAXIMUM_NUMBER_OF_RESULTS]
    if status.uptime is None:
        status.uptime = Uptime()
    process_uptime_after_result(status.uptime, result)


def process_uptime_after_result(uptime: Uptime, result: Result) -> None:
    """Add a result to the hourly statistics, pruning entries older than seven days.

    Pruning only happens once more than ten days' worth of hours are held.
    """
    hour = _hour_of(result.timestamp)
    stats = uptime.hourly_statistics.setdefault(hour, HourlyUptimeStatistics())
    if result.success:
        stats.successful_executions += 1
    stats.total_executions += 1
    stats.total_executions_response_time += _milliseconds(result.duration)
    if len(uptime.hourly_statistics) > _NUMBER_OF_HOURS_IN_TEN_DAYS:
        cutoff = int(time.time() - (_SEVEN_DAYS_SECONDS + _HOUR_SECONDS))
        for stale in [ts for ts in uptime.hourly_statistics if ts < cutoff]:
            del uptime.hourly_statistics[stale]
"""A store that keeps every endpoint status in memory."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from datetime import datetime, timedelta, timezone

from .common import EndpointNotFoundError, InvalidTimeRangeError
from .keys import convert_group_and_endpoint_name_to_key
from .memory_util import _hour_of, add_result, shallow_copy_endpoint_status
from .models import Endpoint, EndpointStatus, Event, EventType, HourlyUptimeStatistics, Result
from .paging import EndpointStatusParams


class MemoryStore:
    """Endpoint statuses held in a dictionary; nothing is persisted."""

    def __init__(self) -> None:
        self._statuses: dict[str, EndpointStatus] = {}
        self._lock = threading.RLock()
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether close() has been called."""
        return self._closed

    def get_all_endpoint_statuses(self, params: EndpointStatusParams) -> list[EndpointStatus]:
        """Return a paged copy of every status, sorted by key."""
        with self._lock:
            copies = [shallow_copy_endpoint_status(s, params) for s in self._statuses.values()]
        return sorted(copies, key=lambda status: status.key)

    def get_endpoint_status(
        self, group_name: str, endpoint_name: str, params: EndpointStatusParams
    ) -> EndpointStatus:
        """Return the paged status of the endpoint with this group and name."""
        key = convert_group_and_endpoint_name_to_key(group_name, endpoint_name)
        return self.get_endpoint_status_by_key(key, params)

    def get_endpoint_status_by_key(self, key: str, params: EndpointStatusParams) -> EndpointStatus:
        """Return the paged status for ``key``; raise EndpointNotFoundError if absent."""
        with self._lock:
            status = self._statuses.get(key)
            if status is None:
                raise EndpointNotFoundError()
            return shallow_copy_endpoint_status(status, params)

    def _hourly_stats(
        self, key: str, start: datetime, end: datetime
    ) -> Iterator[tuple[int, HourlyUptimeStatistics]]:
        if start > end:
            raise InvalidTimeRangeError()
        with self._lock:
            status = self._statuses.get(key)
            if status is None or status.uptime is None:
                raise EndpointNotFoundError()
            hourly = dict(status.uptime.hourly_statistics)
        return self._walk_hours(hourly, start, end)

    @staticmethod
    def _walk_hours(
        hourly: dict[int, HourlyUptimeStatistics], start: datetime, end: datetime
    ) -> Iterator[tuple[int, HourlyUptimeStatistics]]:
        current = start
        while end - current >= timedelta(0):
            hour = _hour_of(current)
            stats = hourly.get(hour)
            if stats is not None and stats.total_executions:
                yield hour, stats
            current += timedelta(hours=1)

    def get_uptime_by_key(self, key: str, start: datetime, end: datetime) -> float:
        """Return the share of successful executions between ``start`` and ``end``."""
        hours = list(self._hourly_stats(key, start, end))
        total = sum(stats.total_executions for _, stats in hours)
        if total == 0:
            return 0.0
        return sum(stats.successful_executions for _, stats in hours) / total

    def get_average_response_time_by_key(self, key: str, start: datetime, end: datetime) -> int:
        """Return the average response time in milliseconds over a time range."""
        hours = list(self._hourly_stats(key, start, end))
        total = sum(stats.total_executions for _, stats in hours)
        if total == 0:
            return 0
        return int(sum(stats.total_executions_response_time for _, stats in hours) / total)

    def get_hourly_average_response_time_by_key(
        self, key: str, start: datetime, end: datetime
    ) -> dict[int, int]:
        """Return the average response time in milliseconds for each hour with data."""
        return {
            hour: int(stats.total_executions_response_time / stats.total_executions)
            for hour, stats in self._hourly_stats(key, start, end)
        }

    def insert(self, endpoint: Endpoint, result: Result) -> None:
        """Record a result for an endpoint, creating its status on first use."""
        key = endpoint.key()
        with self._lock:
            status = self._statuses.get(key)
            if status is None:
                status = EndpointStatus.create(endpoint.group, endpoint.name)
                status.events.append(
                    Event(type=EventType.START, timestamp=datetime.now(timezone.utc))
                )
                self._statuses[key] = status
            add_result(status, result)

    def delete_all_endpoint_statuses_not_in_keys(self, keys: Iterable[str]) -> int:
        """Remove every status whose key is not listed; return how many were removed."""
        kept = set(keys)
        with self._lock:
            stale = [key for key in self._statuses if key not in kept]
            for key in stale:
                del self._statuses[key]
        return len(stale)

    def clear(self) -> None:
        """Remove everything from the store."""
        with self._lock:
            self._statuses.clear()

    def save(self) -> int:
        """Nothing is persisted; wait for pending writes and return how many statuses are held."""
        with self._lock:
            return len(self._statuses)

    def close(self) -> None:
        """Mark the store as closed once pending writes are done; no resources are held."""
        with self._lock:
            self._closed = True
"""A store that persists endpoint statuses in an SQLite database."""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager, suppress
from datetime import datetime, timedelta, timezone

from cachetools import TTLCache

from . import sql_queries as queries
from .common import (
    MAXIMUM_NUMBER_OF_EVENTS,
    MAXIMUM_NUMBER_OF_RESULTS,
    EndpointNotFoundError,
    InvalidTimeRangeError,
    StoreError,
)
from .keys import convert_group_and_endpoint_name_to_key
from .models import Endpoint, EndpointStatus, Event, EventType, Result
from .paging import EndpointStatusParams
from .pattern import match
from .sql_schema import (
    InvalidCacheKeyError,
    create_sqlite_schema,
    extract_key_and_params_from_cache_key,
    generate_cache_key,
)

logger = logging.getLogger(__name__)

UPTIME_CLEAN_UP_THRESHOLD = timedelta(days=10)
"""Age of the oldest uptime entry beyond which old entries are deleted."""

EVENTS_CLEAN_UP_THRESHOLD = MAXIMUM_NUMBER_OF_EVENTS + 10
"""Number of events beyond which old events are deleted."""

RESULTS_CLEAN_UP_THRESHOLD = MAXIMUM_NUMBER_OF_RESULTS + 10
"""Number of results beyond which old results are deleted."""

UPTIME_RETENTION = timedelta(days=7)
"""How long uptime entries are kept once a clean up is triggered."""

CACHE_TTL = timedelta(minutes=10)
"""How long an entry stays in the write-through cache."""

_CACHE_MAX_SIZE = 10000
_SUPPORTED_DRIVERS = ("sqlite",)
_PRAGMAS = (
    "PRAGMA foreign_keys=ON",
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
)
_FAILURES = (StoreError, sqlite3.Error)


class PathNotSpecifiedError(StoreError, ValueError):
    """The database path is empty."""

    def __init__(self, message: str = "path cannot be empty") -> None:
        super().__init__(message)


class DriverNotSpecifiedError(StoreError, ValueError):
    """The database driver is empty."""

    def __init__(self, message: str = "database driver cannot be empty") -> None:
        super().__init__(message)


class SQLStore:
    """Endpoint statuses kept in a database, optionally behind a write-through cache."""

    def __init__(self, driver: str, path: str, caching: bool = False) -> None:
        if not driver:
            raise DriverNotSpecifiedError()
        if not path:
            raise PathNotSpecifiedError()
        if driver not in _SUPPORTED_DRIVERS:
            raise StoreError(f"unsupported database driver: {driver}")
        self.driver = driver
        self.path = path
        self._lock = threading.RLock()
        self._connection = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
        for pragma in _PRAGMAS:
            with suppress(sqlite3.Error):
                self._connection.execute(pragma)
        try:
            self.create_schema()
        except sqlite3.Error:
            self._connection.close()
            raise
        self._cache: TTLCache | None = (
            TTLCache(maxsize=_CACHE_MAX_SIZE, ttl=CACHE_TTL.total_seconds()) if caching else None
        )

    def __enter__(self) -> SQLStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def create_schema(self) -> None:
        """Create every table the store needs, if missing."""
        with self._lock:
            create_sqlite_schema(self._connection)

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            connection = self._connection
            connection.execute("BEGIN")
            try:
                yield connection
            except BaseException:
                if connection.in_transaction:
                    connection.execute("ROLLBACK")
                raise
            try:
                connection.execute("COMMIT")
            except sqlite3.Error:
                if connection.in_transaction:
                    connection.execute("ROLLBACK")
                raise

    def _clear_cache(self) -> None:
        if self._cache is not None:
            self._cache.clear()

    def _get_endpoint_status_by_key(
        self, connection: sqlite3.Connection, key: str, params: EndpointStatusParams
    ) -> EndpointStatus:
        cache_key = ""
        if self._cache is not None:
            cache_key = generate_cache_key(key, params)
            cached = self._cache.get(cache_key)
            if isinstance(cached, EndpointStatus):
                return cached
        endpoint_id, group, name = queries.get_endpoint_id_group_and_name_by_key(connection, key)
        status = EndpointStatus.create(group, name)
        if params.events_page_size > 0:
            try:
                status.events = queries.get_endpoint_events(
                    connection, endpoint_id, params.events_page, params.events_page_size
                )
            except sqlite3.Error as error:
                logger.error("Failed to retrieve events for key=%s: %s", key, error)
        if params.results_page_size > 0:
            try:
                status.results = queries.get_endpoint_results(
                    connection, endpoint_id, params.results_page, params.results_page_size
                )
            except sqlite3.Error as error:
                logger.error("Failed to retrieve results for key=%s: %s", key, error)
        if self._cache is not None:
            self._cache[cache_key] = status
        return status

    def get_all_endpoint_statuses(self, params: EndpointStatusParams) -> list[EndpointStatus]:
        """Return the paged status of every endpoint, sorted by key."""
        with self._transaction() as connection:
            keys = queries.get_all_endpoint_keys(connection)
            statuses = []
            for key in keys:
                try:
                    statuses.append(self._get_endpoint_status_by_key(connection, key, params))
                except _FAILURES:
                    continue
            return statuses

    def get_endpoint_status(
        self, group_name: str, endpoint_name: str, params: EndpointStatusParams
    ) -> EndpointStatus:
        """Return the paged status of the endpoint with this group and name."""
        key = convert_group_and_endpoint_name_to_key(group_name, endpoint_name)
        return self.get_endpoint_status_by_key(key, params)

    def get_endpoint_status_by_key(self, key: str, params: EndpointStatusParams) -> EndpointStatus:
        """Return the paged status for ``key``; raise EndpointNotFoundError if absent."""
        with self._transaction() as connection:
            return self._get_endpoint_status_by_key(connection, key, params)

    def get_uptime_by_key(self, key: str, start: datetime, end: datetime) -> float:
        """Return the share of successful executions between ``start`` and ``end``."""
        if start > end:
            raise InvalidTimeRangeError()
        with self._transaction() as connection:
            endpoint_id, _, _ = queries.get_endpoint_id_group_and_name_by_key(connection, key)
            uptime, _ = queries.get_endpoint_uptime(connection, endpoint_id, start, end)
            return uptime

    def get_average_response_time_by_key(self, key: str, start: datetime, end: datetime) -> int:
        """Return the average response time in milliseconds over a time range."""
        if start > end:
            raise InvalidTimeRangeError()
        with self._transaction() as connection:
            endpoint_id, _, _ = queries.get_endpoint_id_group_and_name_by_key(connection, key)
            return queries.get_endpoint_average_response_time(connection, endpoint_id, start, end)

    def get_hourly_average_response_time_by_key(
        self, key: str, start: datetime, end: datetime
    ) -> dict[int, int]:
        """Return the average response time in milliseconds for each hour with data."""
        if start > end:
            raise InvalidTimeRangeError()
        with self._transaction() as connection:
            endpoint_id, _, _ = queries.get_endpoint_id_group_and_name_by_key(connection, key)
            return queries.get_endpoint_hourly_average_response_times(
                connection, endpoint_id, start, end
            )

    def insert(self, endpoint: Endpoint, result: Result) -> None:
        """Record a result for an endpoint, creating the endpoint on first use."""
        with self._transaction() as connection:
            try:
                endpoint_id = queries.get_endpoint_id(connection, endpoint)
            except EndpointNotFoundError:
                endpoint_id = queries.insert_endpoint(connection, endpoint)
            self._record_events(connection, endpoint, endpoint_id, result)
            try:
                queries.insert_endpoint_result(connection, endpoint_id, result)
            except sqlite3.Error as error:
                self._log_failure("insert result", endpoint, error)
                raise
            self._clean_up_results(connection, endpoint, endpoint_id)
            self._record_uptime(connection, endpoint, endpoint_id, result)
            self._refresh_cache(connection, endpoint)

    def _log_failure(self, action: str, endpoint: Endpoint, error: Exception) -> None:
        logger.error(
            "Failed to %s for group=%s; endpoint=%s: %s",
            action,
            endpoint.group,
            endpoint.name,
            error,
        )

    def _insert_event(
        self, connection: sqlite3.Connection, endpoint: Endpoint, endpoint_id: int, event: Event
    ) -> None:
        try:
            queries.insert_endpoint_event(connection, endpoint_id, event)
        except sqlite3.Error as error:
            self._log_failure(f"insert event={EventType(event.type).value}", endpoint, error)

    def _record_events(
        self,
        connection: sqlite3.Connection,
        endpoint: Endpoint,
        endpoint_id: int,
        result: Result,
    ) -> None:
        try:
            number_of_events = queries.count_events(connection, endpoint_id)
        except sqlite3.Error as error:
            self._log_failure("retrieve total number of events", endpoint, error)
            number_of_events = 0
        if number_of_events == 0:
            start = Event(type=EventType.START, timestamp=result.timestamp - timedelta(milliseconds=50))
            self._insert_event(connection, endpoint, endpoint_id, start)
            self._insert_event(connection, endpoint, endpoint_id, Event.from_result(result))
            return
        try:
            last_success = queries.get_last_result_success(connection, endpoint_id)
        except _FAILURES as error:
            self._log_failure("retrieve outcome of previous result", endpoint, error)
        else:
            if last_success != result.success:
                self._insert_event(connection, endpoint, endpoint_id, Event.from_result(result))
        if number_of_events > EVENTS_CLEAN_UP_THRESHOLD:
            try:
                queries.delete_old_events(connection, endpoint_id)
            except sqlite3.Error as error:
                self._log_failure("delete old events", endpoint, error)

    def _clean_up_results(
        self, connection: sqlite3.Connection, endpoint: Endpoint, endpoint_id: int
    ) -> None:
        try:
            number_of_results = queries.count_results(connection, endpoint_id)
        except sqlite3.Error as error:
            self._log_failure("retrieve total number of results", endpoint, error)
            return
        if number_of_results > RESULTS_CLEAN_UP_THRESHOLD:
            try:
                queries.delete_old_results(connection, endpoint_id)
            except sqlite3.Error as error:
                self._log_failure("delete old results", endpoint, error)

    def _record_uptime(
        self,
        connection: sqlite3.Connection,
        endpoint: Endpoint,
        endpoint_id: int,
        result: Result,
    ) -> None:
        try:
            queries.update_endpoint_uptime(connection, endpoint_id, result)
        except sqlite3.Error as error:
            self._log_failure("update uptime", endpoint, error)
        try:
            oldest_age = queries.get_age_of_oldest_uptime_entry(connection, endpoint_id)
        except _FAILURES as error:
            self._log_failure("retrieve oldest endpoint uptime entry", endpoint, error)
            return
        if oldest_age > UPTIME_CLEAN_UP_THRESHOLD:
            max_age = datetime.now(timezone.utc) - (UPTIME_RETENTION + timedelta(hours=1))
            try:
                queries.delete_old_uptime_entries(connection, endpoint_id, max_age)
            except sqlite3.Error as error:
                self._log_failure("delete old uptime entries", endpoint, error)

    def _refresh_cache(self, connection: sqlite3.Connection, endpoint: Endpoint) -> None:
        if self._cache is None:
            return
        pattern = endpoint.key() + "*"
        for cache_key in [key for key in list(self._cache) if match(pattern, key)]:
            self._cache.pop(cache_key, None)
            try:
                endpoint_key, params = extract_key_and_params_from_cache_key(cache_key)
            except InvalidCacheKeyError as error:
                logger.warning("Deleting cache key %s instead of refreshing it: %s", cache_key, error)
                continue
            with suppress(*_FAILURES):
                self._get_endpoint_status_by_key(connection, endpoint_key, params)

    def delete_all_endpoint_statuses_not_in_keys(self, keys: Iterable[str]) -> int:
        """Remove every endpoint whose key is not listed; return how many were removed."""
        keys = list(keys)
        with self._lock:
            try:
                if not keys:
                    cursor = self._connection.execute("DELETE FROM endpoints")
                else:
                    placeholders = ",".join("?" * len(keys))
                    cursor = self._connection.execute(
                        f"DELETE FROM endpoints WHERE endpoint_key NOT IN ({placeholders})",
                        keys,
                    )
            except sqlite3.Error as error:
                logger.error(
                    "Failed to delete rows that do not belong to any of keys=%s: %s", keys, error
                )
                return 0
            self._clear_cache()
            return cursor.rowcount

    def clear(self) -> None:
        """Remove everything from the store."""
        with self._lock:
            with suppress(sqlite3.Error):
                self._connection.execute("DELETE FROM endpoints")
            self._clear_cache()

    def save(self) -> None:
        """Do nothing: every write is persisted immediately."""

    def close(self) -> None:
        """Close the database connection and drop the cache."""
        with self._lock:
            with suppress(sqlite3.Error):
                self._connection.close()
            self._clear_cache()
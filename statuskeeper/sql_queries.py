"""Queries run against the SQLite-backed store.

These functions never commit or roll back; the caller owns the transaction.
"""

from __future__ import annotations

import math
import sqlite3
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from .common import (
    MAXIMUM_NUMBER_OF_EVENTS,
    MAXIMUM_NUMBER_OF_RESULTS,
    EndpointNotFoundError,
    StoreError,
)
from .memory_util import _hour_of, _milliseconds
from .models import ConditionResult, Endpoint, Event, EventType, Result

# Errors are kept in one column; they only ever serve display purposes.
ARRAY_SEPARATOR = "|~|"

_MICROSECOND = timedelta(microseconds=1)


class NoRowsError(StoreError):
    """A query that should have returned a row returned none."""

    def __init__(self, message: str = "expected a row to be returned, but none was") -> None:
        super().__init__(message)


def _unix(moment: datetime) -> int:
    return math.floor(moment.timestamp())


def _to_db_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat()


def _from_db_timestamp(value) -> datetime:
    moment = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def _to_nanoseconds(duration: timedelta) -> int:
    return (duration // _MICROSECOND) * 1000


def _from_nanoseconds(nanoseconds: int) -> timedelta:
    return timedelta(microseconds=int(nanoseconds) // 1000)


def insert_endpoint(connection: sqlite3.Connection, endpoint: Endpoint) -> int:
    """Insert an endpoint and return its generated id."""
    cursor = connection.execute(
        "INSERT INTO endpoints (endpoint_key, endpoint_name, endpoint_group) VALUES (?, ?, ?)",
        (endpoint.key(), endpoint.name, endpoint.group),
    )
    return cursor.lastrowid


def insert_endpoint_event(connection: sqlite3.Connection, endpoint_id: int, event: Event) -> None:
    """Insert an event for an endpoint."""
    connection.execute(
        "INSERT INTO endpoint_events (endpoint_id, event_type, event_timestamp) VALUES (?, ?, ?)",
        (endpoint_id, EventType(event.type).value, _to_db_timestamp(event.timestamp)),
    )


def insert_endpoint_result(connection: sqlite3.Connection, endpoint_id: int, result: Result) -> int:
    """Insert a result with its condition results and return the result's id."""
    cursor = connection.execute(
        """
        INSERT INTO endpoint_results (endpoint_id, success, errors, connected, status, dns_rcode,
            certificate_expiration, domain_expiration, hostname, ip, duration, timestamp)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            endpoint_id,
            int(result.success),
            ARRAY_SEPARATOR.join(result.errors),
            int(result.connected),
            result.http_status,
            result.dns_rcode,
            _to_nanoseconds(result.certificate_expiration),
            _to_nanoseconds(result.domain_expiration),
            result.hostname,
            result.ip,
            _to_nanoseconds(result.duration),
            _to_db_timestamp(result.timestamp),
        ),
    )
    endpoint_result_id = cursor.lastrowid
    insert_condition_results(connection, endpoint_result_id, result.condition_results)
    return endpoint_result_id


def insert_condition_results(
    connection: sqlite3.Connection,
    endpoint_result_id: int,
    condition_results: Iterable[ConditionResult],
) -> None:
    """Insert the condition results belonging to a result."""
    statement = (
        "INSERT INTO endpoint_result_conditions (endpoint_result_id, condition, success) "
        "VALUES (?, ?, ?)"
    )
    for condition_result in condition_results:
        connection.execute(
            statement,
            (endpoint_result_id, condition_result.condition, int(condition_result.success)),
        )


def update_endpoint_uptime(connection: sqlite3.Connection, endpoint_id: int, result: Result) -> None:
    """Add a result to the uptime counters of the hour it happened in."""
    connection.execute(
        """
        INSERT INTO endpoint_uptimes (endpoint_id, hour_unix_timestamp, total_executions,
            successful_executions, total_response_time)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT(endpoint_id, hour_unix_timestamp) DO UPDATE SET
            total_executions = excluded.total_executions + endpoint_uptimes.total_executions,
            successful_executions = excluded.successful_executions + endpoint_uptimes.successful_executions,
            total_response_time = excluded.total_response_time + endpoint_uptimes.total_response_time
        """,
        (
            endpoint_id,
            _hour_of(result.timestamp),
            1,
            1 if result.success else 0,
            _milliseconds(result.duration),
        ),
    )


def get_all_endpoint_keys(connection: sqlite3.Connection) -> list[str]:
    """Return the key of every endpoint, sorted."""
    rows = connection.execute("SELECT endpoint_key FROM endpoints ORDER BY endpoint_key")
    return [key for (key,) in rows]


def get_endpoint_id_group_and_name_by_key(
    connection: sqlite3.Connection, key: str
) -> tuple[int, str, str]:
    """Return the id, group and name of the endpoint with this key."""
    row = connection.execute(
        """
        SELECT endpoint_id, endpoint_group, endpoint_name
        FROM endpoints
        WHERE endpoint_key = ?
        LIMIT 1
        """,
        (key,),
    ).fetchone()
    if row is None:
        raise EndpointNotFoundError()
    endpoint_id, group, name = row
    return endpoint_id, group, name


def get_endpoint_events(
    connection: sqlite3.Connection, endpoint_id: int, page: int, page_size: int
) -> list[Event]:
    """Return one page of an endpoint's events, oldest first."""
    rows = connection.execute(
        """
        SELECT event_type, event_timestamp
        FROM endpoint_events
        WHERE endpoint_id = ?
        ORDER BY endpoint_event_id ASC
        LIMIT ? OFFSET ?
        """,
        (endpoint_id, page_size, (page - 1) * page_size),
    )
    return [
        Event(type=EventType(event_type), timestamp=_from_db_timestamp(timestamp))
        for event_type, timestamp in rows
    ]


def get_endpoint_results(
    connection: sqlite3.Connection, endpoint_id: int, page: int, page_size: int
) -> list[Result]:
    """Return one page of an endpoint's results with their condition results.

    Page 1 holds the most recent results; within a page they are oldest first.
    """
    rows = connection.execute(
        """
        SELECT endpoint_result_id, success, errors, connected, status, dns_rcode,
            certificate_expiration, domain_expiration, hostname, ip, duration, timestamp
        FROM endpoint_results
        WHERE endpoint_id = ?
        ORDER BY endpoint_result_id DESC
        LIMIT ? OFFSET ?
        """,
        (endpoint_id, page_size, (page - 1) * page_size),
    ).fetchall()
    results_by_id: dict[int, Result] = {}
    for (
        result_id,
        success,
        joined_errors,
        connected,
        status,
        dns_rcode,
        certificate_expiration,
        domain_expiration,
        hostname,
        ip,
        duration,
        timestamp,
    ) in reversed(rows):
        results_by_id[result_id] = Result(
            http_status=status,
            dns_rcode=dns_rcode,
            hostname=hostname,
            ip=ip,
            connected=bool(connected),
            duration=_from_nanoseconds(duration),
            errors=joined_errors.split(ARRAY_SEPARATOR) if joined_errors else [],
            success=bool(success),
            timestamp=_from_db_timestamp(timestamp),
            certificate_expiration=_from_nanoseconds(certificate_expiration),
            domain_expiration=_from_nanoseconds(domain_expiration),
        )
    if not results_by_id:
        return []
    placeholders = ",".join("?" * len(results_by_id))
    conditions = connection.execute(
        f"""
        SELECT endpoint_result_id, condition, success
        FROM endpoint_result_conditions
        WHERE endpoint_result_id IN ({placeholders})
        ORDER BY endpoint_result_condition_id
        """,
        tuple(results_by_id),
    )
    for result_id, condition, success in conditions:
        results_by_id[result_id].condition_results.append(
            ConditionResult(condition=condition, success=bool(success))
        )
    return list(results_by_id.values())


def get_endpoint_uptime(
    connection: sqlite3.Connection, endpoint_id: int, start: datetime, end: datetime
) -> tuple[float, timedelta]:
    """Return the uptime ratio and average response time over a time range."""
    total, successful, response_time = connection.execute(
        """
        SELECT SUM(total_executions), SUM(successful_executions), SUM(total_response_time)
        FROM endpoint_uptimes
        WHERE endpoint_id = ?
            AND hour_unix_timestamp >= ?
            AND hour_unix_timestamp <= ?
        """,
        (endpoint_id, _unix(start), _unix(end)),
    ).fetchone()
    total = total or 0
    if total <= 0:
        return 0.0, timedelta(0)
    average = timedelta(milliseconds=int((response_time or 0) / total))
    return (successful or 0) / total, average


def get_endpoint_average_response_time(
    connection: sqlite3.Connection, endpoint_id: int, start: datetime, end: datetime
) -> int:
    """Return the average response time in milliseconds over a time range."""
    total, response_time = connection.execute(
        """
        SELECT SUM(total_executions), SUM(total_response_time)
        FROM endpoint_uptimes
        WHERE endpoint_id = ?
            AND total_executions > 0
            AND hour_unix_timestamp >= ?
            AND hour_unix_timestamp <= ?
        """,
        (endpoint_id, _unix(start), _unix(end)),
    ).fetchone()
    if not total:
        return 0
    return int((response_time or 0) / total)


def get_endpoint_hourly_average_response_times(
    connection: sqlite3.Connection, endpoint_id: int, start: datetime, end: datetime
) -> dict[int, int]:
    """Return the average response time in milliseconds for each hour with data."""
    rows = connection.execute(
        """
        SELECT hour_unix_timestamp, total_executions, total_response_time
        FROM endpoint_uptimes
        WHERE endpoint_id = ?
            AND total_executions > 0
            AND hour_unix_timestamp >= ?
            AND hour_unix_timestamp <= ?
        """,
        (endpoint_id, _unix(start), _unix(end)),
    )
    return {hour: int(response_time / total) for hour, total, response_time in rows}


def get_endpoint_id(connection: sqlite3.Connection, endpoint: Endpoint) -> int:
    """Return the id of an endpoint; raise EndpointNotFoundError if it is absent."""
    row = connection.execute(
        "SELECT endpoint_id FROM endpoints WHERE endpoint_key = ?", (endpoint.key(),)
    ).fetchone()
    if row is None:
        raise EndpointNotFoundError()
    return row[0]


def count_events(connection: sqlite3.Connection, endpoint_id: int) -> int:
    """Return how many events an endpoint has."""
    (count,) = connection.execute(
        "SELECT COUNT(1) FROM endpoint_events WHERE endpoint_id = ?", (endpoint_id,)
    ).fetchone()
    return count


def count_results(connection: sqlite3.Connection, endpoint_id: int) -> int:
    """Return how many results an endpoint has."""
    (count,) = connection.execute(
        "SELECT COUNT(1) FROM endpoint_results WHERE endpoint_id = ?", (endpoint_id,)
    ).fetchone()
    return count


def get_age_of_oldest_uptime_entry(connection: sqlite3.Connection, endpoint_id: int) -> timedelta:
    """Return how long ago the oldest uptime hour of an endpoint started."""
    row = connection.execute(
        """
        SELECT hour_unix_timestamp
        FROM endpoint_uptimes
        WHERE endpoint_id = ?
        ORDER BY hour_unix_timestamp
        LIMIT 1
        """,
        (endpoint_id,),
    ).fetchone()
    if row is None:
        raise NoRowsError()
    oldest = datetime.fromtimestamp(row[0], timezone.utc)
    return datetime.now(timezone.utc) - oldest


def get_last_result_success(connection: sqlite3.Connection, endpoint_id: int) -> bool:
    """Return whether the most recent result of an endpoint was a success."""
    row = connection.execute(
        "SELECT success FROM endpoint_results WHERE endpoint_id = ? "
        "ORDER BY endpoint_result_id DESC LIMIT 1",
        (endpoint_id,),
    ).fetchone()
    if row is None:
        raise NoRowsError()
    return bool(row[0])


def delete_old_events(connection: sqlite3.Connection, endpoint_id: int) -> None:
    """Keep only the most recent events of an endpoint."""
    connection.execute(
        """
        DELETE FROM endpoint_events
        WHERE endpoint_id = ?
            AND endpoint_event_id NOT IN (
                SELECT endpoint_event_id
                FROM endpoint_events
                WHERE endpoint_id = ?
                ORDER BY endpoint_event_id DESC
                LIMIT ?
            )
        """,
        (endpoint_id, endpoint_id, MAXIMUM_NUMBER_OF_EVENTS),
    )


def delete_old_results(connection: sqlite3.Connection, endpoint_id: int) -> None:
    """Keep only the most recent results of an endpoint."""
    connection.execute(
        """
        DELETE FROM endpoint_results
        WHERE endpoint_id = ?
            AND endpoint_result_id NOT IN (
                SELECT endpoint_result_id
                FROM endpoint_results
                WHERE endpoint_id = ?
                ORDER BY endpoint_result_id DESC
                LIMIT ?
            )
        """,
        (endpoint_id, endpoint_id, MAXIMUM_NUMBER_OF_RESULTS),
    )


def delete_old_uptime_entries(
    connection: sqlite3.Connection, endpoint_id: int, max_age: datetime
) -> None:
    """Delete the uptime hours of an endpoint that started before ``max_age``."""
    connection.execute(
        "DELETE FROM endpoint_uptimes WHERE endpoint_id = ? AND hour_unix_timestamp < ?",
        (endpoint_id, _unix(max_age)),
    )
"""Schema and cache keys for the SQLite-backed store."""

from __future__ import annotations

import re
import sqlite3
from contextlib import suppress

from .paging import EndpointStatusParams

_CREATE_ENDPOINTS = """
    CREATE TABLE IF NOT EXISTS endpoints (
        endpoint_id    INTEGER PRIMARY KEY,
        endpoint_key   TEXT UNIQUE,
        endpoint_name  TEXT NOT NULL,
        endpoint_group TEXT NOT NULL,
        UNIQUE(endpoint_name, endpoint_group)
    )
"""

_CREATE_ENDPOINT_EVENTS = """
    CREATE TABLE IF NOT EXISTS endpoint_events (
        endpoint_event_id  INTEGER PRIMARY KEY,
        endpoint_id        INTEGER   NOT NULL REFERENCES endpoints(endpoint_id) ON DELETE CASCADE,
        event_type         TEXT      NOT NULL,
        event_timestamp    TIMESTAMP NOT NULL
    )
"""

_CREATE_ENDPOINT_RESULTS = """
    CREATE TABLE IF NOT EXISTS endpoint_results (
        endpoint_result_id     INTEGER PRIMARY KEY,
        endpoint_id            INTEGER   NOT NULL REFERENCES endpoints(endpoint_id) ON DELETE CASCADE,
        success                INTEGER   NOT NULL,
        errors                 TEXT      NOT NULL,
        connected              INTEGER   NOT NULL,
        status                 INTEGER   NOT NULL,
        dns_rcode              TEXT      NOT NULL,
        certificate_expiration INTEGER   NOT NULL,
        domain_expiration      INTEGER   NOT NULL,
        hostname               TEXT      NOT NULL,
        ip                     TEXT      NOT NULL,
        duration               INTEGER   NOT NULL,
        timestamp              TIMESTAMP NOT NULL
    )
"""

_CREATE_ENDPOINT_RESULT_CONDITIONS = """
    CREATE TABLE IF NOT EXISTS endpoint_result_conditions (
        endpoint_result_condition_id  INTEGER PRIMARY KEY,
        endpoint_result_id            INTEGER NOT NULL REFERENCES endpoint_results(endpoint_result_id) ON DELETE CASCADE,
        condition                     TEXT    NOT NULL,
        success                       INTEGER NOT NULL
    )
"""

_CREATE_ENDPOINT_UPTIMES = """
    CREATE TABLE IF NOT EXISTS endpoint_uptimes (
        endpoint_uptime_id    INTEGER PRIMARY KEY,
        endpoint_id           INTEGER NOT NULL REFERENCES endpoints(endpoint_id) ON DELETE CASCADE,
        hour_unix_timestamp   INTEGER NOT NULL,
        total_executions      INTEGER NOT NULL,
        successful_executions INTEGER NOT NULL,
        total_response_time   INTEGER NOT NULL,
        UNIQUE(endpoint_id, hour_unix_timestamp)
    )
"""

_ADD_DOMAIN_EXPIRATION = (
    "ALTER TABLE endpoint_results ADD domain_expiration INTEGER NOT NULL DEFAULT 0"
)

_INTEGER = re.compile(r"[+-]?[0-9]+")


class InvalidCacheKeyError(ValueError):
    """A cache key cannot be split into an endpoint key and paging parameters."""


def create_sqlite_schema(connection: sqlite3.Connection) -> None:
    """Create every table the store needs, leaving existing tables untouched."""
    connection.execute(_CREATE_ENDPOINTS)
    connection.execute(_CREATE_ENDPOINT_EVENTS)
    connection.execute(_CREATE_ENDPOINT_RESULTS)
    connection.execute(_CREATE_ENDPOINT_RESULT_CONDITIONS)
    try:
        connection.execute(_CREATE_ENDPOINT_UPTIMES)
    finally:
        # Older databases lack this column; on newer ones the statement fails harmlessly.
        with suppress(sqlite3.Error):
            connection.execute(_ADD_DOMAIN_EXPIRATION)


def generate_cache_key(endpoint_key: str, params: EndpointStatusParams) -> str:
    """Build the cache key for an endpoint status fetched with these paging parameters."""
    return (
        f"{endpoint_key}-{params.events_page}-{params.events_page_size}"
        f"-{params.results_page}-{params.results_page_size}"
    )


def _parse_int(part: str, cache_key: str) -> int:
    if not _INTEGER.fullmatch(part):
        raise InvalidCacheKeyError(f"invalid cache key: {cache_key}")
    return int(part)


def extract_key_and_params_from_cache_key(
    cache_key: str,
) -> tuple[str, EndpointStatusParams]:
    """Split a cache key back into the endpoint key and its paging parameters."""
    parts = cache_key.split("-")
    if len(parts) < 5:
        raise InvalidCacheKeyError(f"invalid cache key: {cache_key}")
    events_page, events_page_size, results_page, results_page_size = (
        _parse_int(part, cache_key) for part in parts[-4:]
    )
    params = EndpointStatusParams(
        events_page=events_page,
        events_page_size=events_page_size,
        results_page=results_page,
        results_page_size=results_page_size,
    )
    return "-".join(parts[:-4]), params
import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from statuskeeper.common import (
    MAXIMUM_NUMBER_OF_EVENTS,
    MAXIMUM_NUMBER_OF_RESULTS,
    EndpointNotFoundError,
)
from statuskeeper.models import ConditionResult, Endpoint, Event, EventType, Result
from statuskeeper.paging import EndpointStatusParams
from statuskeeper.sql_queries import (
    NoRowsError,
    count_events,
    count_results,
    delete_old_events,
    delete_old_results,
    delete_old_uptime_entries,
    get_age_of_oldest_uptime_entry,
    get_all_endpoint_keys,
    get_endpoint_average_response_time,
    get_endpoint_events,
    get_endpoint_hourly_average_response_times,
    get_endpoint_id,
    get_endpoint_id_group_and_name_by_key,
    get_endpoint_results,
    get_endpoint_uptime,
    get_last_result_success,
    insert_condition_results,
    insert_endpoint,
    insert_endpoint_event,
    insert_endpoint_result,
    update_endpoint_uptime,
)
from statuskeeper.sql_schema import create_sqlite_schema

NOW = datetime.now(timezone.utc)
HOUR_START = NOW.replace(minute=0, second=0, microsecond=0)


def _endpoint(name="name", group="group"):
    return Endpoint(
        name=name,
        group=group,
        url="https://example.org/what/ever",
        method="GET",
        body="body",
        interval=timedelta(seconds=30),
        conditions=["[STATUS] == 200", "[RESPONSE_TIME] < 500", "[CERTIFICATE_EXPIRATION] < 72h"],
    )


def _successful(timestamp=NOW, duration=timedelta(milliseconds=150)):
    return Result(
        hostname="example.org",
        ip="127.0.0.1",
        http_status=200,
        errors=[],
        connected=True,
        success=True,
        timestamp=timestamp,
        duration=duration,
        certificate_expiration=timedelta(hours=10),
        condition_results=[
            ConditionResult("[STATUS] == 200", True),
            ConditionResult("[RESPONSE_TIME] < 500", True),
            ConditionResult("[CERTIFICATE_EXPIRATION] < 72h", True),
        ],
    )


def _unsuccessful(timestamp=NOW, duration=timedelta(milliseconds=750)):
    return Result(
        hostname="example.org",
        ip="127.0.0.1",
        http_status=200,
        errors=["error-1", "error-2"],
        connected=True,
        success=False,
        timestamp=timestamp,
        duration=duration,
        certificate_expiration=timedelta(hours=10),
        condition_results=[
            ConditionResult("[STATUS] == 200", True),
            ConditionResult("[RESPONSE_TIME] < 500", False),
            ConditionResult("[CERTIFICATE_EXPIRATION] < 72h", False),
        ],
    )


@pytest.fixture
def connection():
    conn = sqlite3.connect(":memory:")
    conn.execute("PRAGMA foreign_keys=ON")
    create_sqlite_schema(conn)
    yield conn
    conn.close()


@pytest.fixture
def endpoint_id(connection):
    return insert_endpoint(connection, _endpoint())


@pytest.fixture
def closed_connection():
    conn = sqlite3.connect(":memory:")
    create_sqlite_schema(conn)
    conn.close()
    return conn


def test_no_rows(connection):
    with pytest.raises(NoRowsError):
        get_last_result_success(connection, 1)
    with pytest.raises(NoRowsError):
        get_age_of_oldest_uptime_entry(connection, 1)


def test_inserts_fail_on_closed_connection(closed_connection):
    conn = closed_connection
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        insert_endpoint(conn, _endpoint())
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        insert_endpoint_event(conn, 1, Event.from_result(_successful()))
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        insert_endpoint_result(conn, 1, _successful())
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        insert_condition_results(conn, 1, _successful().condition_results)
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        update_endpoint_uptime(conn, 1, _successful())


def test_reads_fail_on_closed_connection(closed_connection):
    conn = closed_connection
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        get_all_endpoint_keys(conn)
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        get_endpoint_id_group_and_name_by_key(conn, _endpoint().key())
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        get_endpoint_events(conn, 1, 1, 50)
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        get_endpoint_results(conn, 1, 1, 50)
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        get_endpoint_uptime(conn, 1, NOW, NOW)
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        get_endpoint_id(conn, _endpoint())
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        count_events(conn, 1)
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        count_results(conn, 1)
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        get_age_of_oldest_uptime_entry(conn, 1)
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        get_last_result_success(conn, 1)


def test_deletes_fail_on_closed_connection(closed_connection):
    conn = closed_connection
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        delete_old_events(conn, 1)
    with pytest.raises(sqlite3.ProgrammingError, match="closed"):
        delete_old_results(conn, 1)


def test_insert_and_look_up_endpoint(connection):
    endpoint = _endpoint()
    new_id = insert_endpoint(connection, endpoint)
    assert get_endpoint_id(connection, endpoint) == new_id
    assert get_endpoint_id_group_and_name_by_key(connection, endpoint.key()) == (
        new_id,
        "group",
        "name",
    )


def test_missing_endpoint_raises(connection):
    with pytest.raises(EndpointNotFoundError):
        get_endpoint_id(connection, _endpoint(name="missing"))
    with pytest.raises(EndpointNotFoundError):
        get_endpoint_id_group_and_name_by_key(connection, "group_missing")


def test_all_endpoint_keys_are_sorted(connection):
    insert_endpoint(connection, _endpoint(name="zeta"))
    insert_endpoint(connection, _endpoint(name="alpha"))
    assert get_all_endpoint_keys(connection) == ["group_alpha", "group_zeta"]


def test_results_round_trip(connection, endpoint_id):
    expected = [_successful(NOW - timedelta(minutes=1)), _unsuccessful(NOW)]
    for result in expected:
        insert_endpoint_result(connection, endpoint_id, result)
    results = get_endpoint_results(connection, endpoint_id, 1, MAXIMUM_NUMBER_OF_RESULTS)
    assert len(results) == 2
    for actual, wanted in zip(results, expected):
        assert actual.http_status == wanted.http_status
        assert actual.dns_rcode == wanted.dns_rcode
        assert actual.hostname == wanted.hostname
        assert actual.ip == wanted.ip
        assert actual.connected == wanted.connected
        assert actual.duration == wanted.duration
        assert actual.errors == wanted.errors
        assert actual.condition_results == wanted.condition_results
        assert actual.success == wanted.success
        assert actual.timestamp == wanted.timestamp
        assert actual.certificate_expiration == wanted.certificate_expiration
    assert count_results(connection, endpoint_id) == 2
    assert get_last_result_success(connection, endpoint_id) is False


def test_first_result_page_holds_most_recent(connection, endpoint_id):
    older = NOW - timedelta(minutes=1)
    insert_endpoint_result(connection, endpoint_id, _successful(older))
    insert_endpoint_result(connection, endpoint_id, _unsuccessful(NOW))
    page1 = get_endpoint_results(connection, endpoint_id, 1, 1)
    page2 = get_endpoint_results(connection, endpoint_id, 2, 1)
    assert [r.timestamp for r in page1] == [NOW]
    assert [r.timestamp for r in page2] == [older]
    assert get_endpoint_results(connection, endpoint_id, 3, 1) == []


def test_events_round_trip(connection, endpoint_id):
    insert_endpoint_event(
        connection, endpoint_id, Event(type=EventType.START, timestamp=NOW - timedelta(seconds=1))
    )
    insert_endpoint_event(connection, endpoint_id, Event.from_result(_unsuccessful()))
    events = get_endpoint_events(connection, endpoint_id, 1, 50)
    assert [e.type for e in events] == [EventType.START, EventType.UNHEALTHY]
    assert events[1].timestamp == NOW
    assert count_events(connection, endpoint_id) == 2
    assert [e.type for e in get_endpoint_events(connection, endpoint_id, 2, 1)] == [
        EventType.UNHEALTHY
    ]


def test_uptime_and_response_times(connection, endpoint_id):
    update_endpoint_uptime(connection, endpoint_id, _successful(HOUR_START))
    update_endpoint_uptime(connection, endpoint_id, _unsuccessful(HOUR_START))
    start = HOUR_START - timedelta(hours=1)
    uptime, average = get_endpoint_uptime(connection, endpoint_id, start, NOW)
    assert uptime == 0.5
    assert average == timedelta(milliseconds=450)
    assert get_endpoint_average_response_time(connection, endpoint_id, start, NOW) == 450
    hourly = get_endpoint_hourly_average_response_times(connection, endpoint_id, start, NOW)
    assert hourly == {int(HOUR_START.timestamp()): 450}


def test_uptime_without_data_is_zero(connection, endpoint_id):
    start = NOW - timedelta(hours=48)
    end = NOW - timedelta(hours=24)
    assert get_endpoint_uptime(connection, endpoint_id, start, end) == (0.0, timedelta(0))
    assert get_endpoint_average_response_time(connection, endpoint_id, start, end) == 0
    assert get_endpoint_hourly_average_response_times(connection, endpoint_id, start, end) == {}


def test_age_of_oldest_uptime_entry(connection, endpoint_id):
    update_endpoint_uptime(connection, endpoint_id, _successful(HOUR_START - timedelta(hours=5)))
    assert get_age_of_oldest_uptime_entry(connection, endpoint_id) // timedelta(hours=1) == 5
    update_endpoint_uptime(connection, endpoint_id, _successful(HOUR_START - timedelta(hours=3)))
    assert get_age_of_oldest_uptime_entry(connection, endpoint_id) // timedelta(hours=1) == 5
    update_endpoint_uptime(connection, endpoint_id, _successful(HOUR_START - timedelta(hours=8)))
    assert get_age_of_oldest_uptime_entry(connection, endpoint_id) // timedelta(hours=1) == 8


def test_delete_old_uptime_entries(connection, endpoint_id):
    update_endpoint_uptime(connection, endpoint_id, _successful(HOUR_START - timedelta(days=9)))
    update_endpoint_uptime(connection, endpoint_id, _successful(HOUR_START - timedelta(hours=8)))
    delete_old_uptime_entries(connection, endpoint_id, NOW - timedelta(days=7, hours=1))
    assert get_age_of_oldest_uptime_entry(connection, endpoint_id) // timedelta(hours=1) == 8


def test_delete_old_events_keeps_the_most_recent(connection, endpoint_id):
    for offset in range(MAXIMUM_NUMBER_OF_EVENTS + 10):
        insert_endpoint_event(
            connection,
            endpoint_id,
            Event(type=EventType.HEALTHY, timestamp=NOW + timedelta(seconds=offset)),
        )
    delete_old_events(connection, endpoint_id)
    assert count_events(connection, endpoint_id) == MAXIMUM_NUMBER_OF_EVENTS
    events = get_endpoint_events(connection, endpoint_id, 1, 100)
    assert events[-1].timestamp == NOW + timedelta(seconds=MAXIMUM_NUMBER_OF_EVENTS + 9)


def test_delete_old_results_keeps_the_most_recent(connection, endpoint_id):
    for offset in range(MAXIMUM_NUMBER_OF_RESULTS + 10):
        insert_endpoint_result(
            connection, endpoint_id, _successful(NOW + timedelta(seconds=offset))
        )
    delete_old_results(connection, endpoint_id)
    assert count_results(connection, endpoint_id) == MAXIMUM_NUMBER_OF_RESULTS
    (conditions,) = connection.execute(
        "SELECT COUNT(1) FROM endpoint_result_conditions"
    ).fetchone()
    assert conditions == MAXIMUM_NUMBER_OF_RESULTS * 3
    results = get_endpoint_results(connection, endpoint_id, 1, 500)
    assert results[0].timestamp == NOW + timedelta(seconds=10)


def test_insert_condition_results(connection, endpoint_id):
    result_id = insert_endpoint_result(connection, endpoint_id, Result(success=True, timestamp=NOW))
    insert_condition_results(connection, result_id, [ConditionResult("[STATUS] == 200", False)])
    (result,) = get_endpoint_results(connection, endpoint_id, 1, 10)
    assert result.condition_results == [ConditionResult("[STATUS] == 200", False)]
    assert result.errors == []


def test_paging_params_unused_here_are_independent():
    params = EndpointStatusParams().with_results(1, 20)
    assert (params.results_page, params.results_page_size) == (1, 20)
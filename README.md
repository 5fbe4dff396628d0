# statuskeeper

The storage layer of an endpoint health monitor. It records the results of
health checks, turns changes of health into events, keeps hourly uptime
statistics, and hands results and events back a page at a time. It also holds
the settings for protecting a dashboard with basic authentication or OpenID
Connect.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Data model

`statuskeeper.models` defines the records the stores work with:

- `Endpoint` – a monitored endpoint; `Endpoint.key()` gives its storage key.
- `Result` – one health check: `success`, `duration`, `timestamp`,
  `http_status`, `dns_rcode`, `hostname`, `ip`, `connected`, `errors`,
  `condition_results` (a list of `ConditionResult`), `certificate_expiration`
  and `domain_expiration`.
- `Event` with `EventType.START`, `HEALTHY` or `UNHEALTHY`;
  `Event.from_result(result)` builds a healthy or unhealthy event.
- `EndpointStatus` – the results, events and `Uptime` of one endpoint;
  `EndpointStatus.create(group, name)` builds an empty one.

## Stores

Two stores offer the same methods:

- `statuskeeper.memory.MemoryStore` keeps everything in a dictionary. Nothing
  is written to disk; `save()` only returns how many statuses it holds.
- `statuskeeper.sql_store.SQLStore(driver, path, caching=False)` writes to an
  SQLite database (`driver` must be `"sqlite"`). With `caching=True`, reads are
  kept in a write-through cache for ten minutes. It can be used as a context
  manager, which closes it on exit. An empty driver raises
  `DriverNotSpecifiedError`, an empty path `PathNotSpecifiedError`.

```python
from datetime import datetime, timedelta, timezone

from statuskeeper.memory import MemoryStore
from statuskeeper.models import Endpoint, Result
from statuskeeper.paging import EndpointStatusParams

store = MemoryStore()
endpoint = Endpoint(name="front-end", group="core")
now = datetime.now(timezone.utc)
store.insert(endpoint, Result(success=True, duration=timedelta(milliseconds=120), timestamp=now))

params = EndpointStatusParams().with_results(1, 20).with_events(1, 50)
status = store.get_endpoint_status("core", "front-end", params)
uptime = store.get_uptime_by_key(endpoint.key(), now - timedelta(days=1), now)
average_ms = store.get_average_response_time_by_key(endpoint.key(), now - timedelta(days=1), now)
hourly_ms = store.get_hourly_average_response_time_by_key(endpoint.key(), now - timedelta(days=1), now)
```

The other methods are `get_all_endpoint_statuses(params)` (sorted by key),
`get_endpoint_status_by_key(key, params)`,
`delete_all_endpoint_statuses_not_in_keys(keys)` (returns how many were
removed), `clear()`, `save()` and `close()`.

Page 1 holds the most recent results; within a page they run oldest first.
Each endpoint keeps at most 100 results and 50 events
(`statuskeeper.common.MAXIMUM_NUMBER_OF_RESULTS` and
`MAXIMUM_NUMBER_OF_EVENTS`), and about a week of hourly statistics.

Looking up an endpoint that does not exist raises
`statuskeeper.common.EndpointNotFoundError`; a time range whose start comes
after its end raises `statuskeeper.common.InvalidTimeRangeError`. Both derive
from `StoreError`.

The helpers behind the in-memory store are in `statuskeeper.memory_util`
(`add_result`, `shallow_copy_endpoint_status`, `process_uptime_after_result`);
the SQLite schema, cache keys and queries are in `statuskeeper.sql_schema` and
`statuskeeper.sql_queries`.

## Choosing a store from configuration

```python
from statuskeeper import store
from statuskeeper.config import StorageConfig, StorageType

cfg = StorageConfig(type=StorageType.SQLITE, path="data.db", caching=True)
cfg.validate_and_set_defaults()
store.initialize(cfg)
current = store.get()
```

`validate_and_set_defaults()` defaults the type to memory and raises
`StorageConfigError` when an SQL type has no path or the memory type has one.
`store.get()` creates an in-memory store if `initialize` was never called.
`store.auto_save(store_object, interval, stop_event)` calls `save()` every
`interval` (seconds or a `timedelta`) until the `threading.Event` is set.

## Endpoint keys and patterns

`statuskeeper.keys.convert_group_and_endpoint_name_to_key("Core", "Front End")`
returns `"core_front-end"`. `statuskeeper.pattern.match("*ing*", "livingroom")`
returns `True`; patterns are shell-style globs, and a malformed pattern never
matches.

## Security settings

`statuskeeper.security.SecurityConfig` holds a `BasicConfig` (a username and a
base64-encoded bcrypt hash of the password) and/or an `OIDCConfig` (issuer,
redirect URL ending in `/authorization-code/callback`, client id and secret,
scopes, allowed subjects). `is_valid()` checks each of them.
`SecurityConfig.check_basic_auth(username, password)` tells whether the given
credentials grant access; it grants access when no password hash is set and
raises `ValueError` if the stored hash is not valid base64.

## What this package does not do

- It does not run health checks; results are given to it.
- It has no web server, dashboard or HTTP middleware, and does not carry out an
  OpenID Connect login: `OIDCConfig` is only validated.
- It stores data in memory or SQLite only; the `postgres` storage type is
  recognised in configuration but no store can open it.
- It does not publish metrics.
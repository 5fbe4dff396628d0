"""Endpoints and the results, events and uptime recorded for them."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from .keys import convert_group_and_endpoint_name_to_key


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ConditionResult:
    """The outcome of one condition evaluated against a result."""

    condition: str
    success: bool


@dataclass
class Result:
    """The outcome of one health check of an endpoint."""

    http_status: int = 0
    dns_rcode: str = ""
    hostname: str = ""
    ip: str = ""
    connected: bool = False
    duration: timedelta = timedelta(0)
    errors: list[str] = field(default_factory=list)
    condition_results: list[ConditionResult] = field(default_factory=list)
    success: bool = False
    timestamp: datetime = field(default_factory=_now)
    certificate_expiration: timedelta = timedelta(0)
    domain_expiration: timedelta = timedelta(0)


class EventType(str, Enum):
    """The kind of change an event records."""

    START = "START"
    HEALTHY = "HEALTHY"
    UNHEALTHY = "UNHEALTHY"


@dataclass
class Event:
    """A change in the state of an endpoint."""

    type: EventType
    timestamp: datetime = field(default_factory=_now)

    @classmethod
    def from_result(cls, result: Result) -> Event:
        """Build a healthy or unhealthy event from a result."""
        event_type = EventType.HEALTHY if result.success else EventType.UNHEALTHY
        return cls(type=event_type, timestamp=result.timestamp)


@dataclass
class HourlyUptimeStatistics:
    """Execution counters for one hour."""

    total_executions: int = 0
    successful_executions: int = 0
    total_executions_response_time: int = 0


@dataclass
class Uptime:
    """Hourly statistics keyed by the unix timestamp of the start of the hour."""

    hourly_statistics: dict[int, HourlyUptimeStatistics] = field(default_factory=dict)


@dataclass
class EndpointStatus:
    """Everything recorded for one endpoint."""

    name: str
    group: str
    key: str
    results: list[Result] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    uptime: Uptime | None = field(default_factory=Uptime)

    @classmethod
    def create(cls, group: str, name: str) -> EndpointStatus:
        """Build an empty status for the endpoint with this group and name."""
        return cls(
            name=name,
            group=group,
            key=convert_group_and_endpoint_name_to_key(group, name),
        )


@dataclass
class Endpoint:
    """A monitored endpoint."""

    name: str
    group: str = ""
    url: str = ""
    method: str = "GET"
    body: str = ""
    interval: timedelta = timedelta(minutes=1)
    conditions: list[str] = field(default_factory=list)

    def key(self) -> str:
        """Return the key that identifies this endpoint."""
        return convert_group_and_endpoint_name_to_key(self.group, self.name)
"""Result storage, uptime statistics, paging and access-control settings for endpoint health monitoring."""

__version__ = "0.1.0"
"""Paging parameters for endpoint status queries."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class EndpointStatusParams:
    """Which page of events and results to return, and how large a page is."""

    events_page: int = 0
    events_page_size: int = 0
    results_page: int = 0
    results_page_size: int = 0

    def with_events(self, page: int, page_size: int) -> EndpointStatusParams:
        """Set the events page and page size, returning the same object."""
        self.events_page = page
        self.events_page_size = page_size
        return self

    def with_results(self, page: int, page_size: int) -> EndpointStatusParams:
        """Set the results page and page size, returning the same object."""
        self.results_page = page
        self.results_page_size = page_size
        return self
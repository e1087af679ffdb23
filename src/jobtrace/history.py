#!/usr/bin/env python3
"""
Paginated position history retrieval filtered by correlation id.
"""

from typing import List, NamedTuple, Optional
import logging

from .backend import PositionRecord, TrackingBackend, TrackingBackendError
from .geometry import Position

DEFAULT_CORRELATION_KEY = "jobOrderId"

logger = logging.getLogger(__name__)


class HistoryUnavailableError(Exception):
    """Raised when the position history could not be fetched completely."""

    pass


class HistoryQuery(NamedTuple):
    """Identity of one history request."""

    device_id: str
    correlation_id: str

    def validate(self) -> None:
        """
        Raises:
            ValueError: If either identifier is empty
        """
        if not self.device_id:
            raise ValueError("Device id must not be empty")
        if not self.correlation_id:
            raise ValueError("Correlation id must not be empty")


class FetchStats(NamedTuple):
    """Counters collected while paging through the history."""

    pages: int = 0
    records_seen: int = 0
    records_matched: int = 0


class HistoryFetch(NamedTuple):
    """Matched records of a completed history fetch."""

    records: List[PositionRecord]
    stats: FetchStats

    @property
    def positions(self) -> List[Position]:
        return [record.position for record in self.records]


def matches_correlation(
    record: PositionRecord, correlation_id: str, correlation_key: str
) -> bool:
    """Check whether a record's metadata carries the requested correlation id."""
    return record.metadata.get(correlation_key) == correlation_id


def _order_by_sample_time(records: List[PositionRecord]) -> List[PositionRecord]:
    """Stable-sort records by sample time if every record has one."""
    if any(record.sample_time is None for record in records):
        logger.warning(
            "Cannot order history by time: some positions have no sample time; keeping backend order"
        )
        return records
    return sorted(records, key=lambda record: record.sample_time)


def fetch_history(
    backend: TrackingBackend,
    query: HistoryQuery,
    correlation_key: str = DEFAULT_CORRELATION_KEY,
    order_by_time: bool = False,
) -> HistoryFetch:
    """Fetch all positions of a device that belong to one job.

    Pages through the backend's position history until no continuation
    token is returned, keeping only records whose metadata correlation id
    equals query.correlation_id. Records keep page order, then intra-page
    order, unless order_by_time is set.

    Args:
        backend: Tracking backend to query
        query: Device and correlation id to fetch
        correlation_key: Metadata key holding the correlation id
        order_by_time: Sort matched records by sample time

    Returns:
        HistoryFetch with the matched records and paging counters

    Raises:
        ValueError: If the query has an empty identifier
        HistoryUnavailableError: If any page request fails; no partial results
    """
    query.validate()

    matched: List[PositionRecord] = []
    pages = 0
    records_seen = 0
    next_token: Optional[str] = None

    while True:
        try:
            page = backend.get_position_history(query.device_id, next_token)
        except TrackingBackendError as e:
            logger.error(
                f"History for device {query.device_id} unavailable after {pages} pages: {e}"
            )
            raise HistoryUnavailableError(str(e)) from e

        pages += 1
        records_seen += len(page.records)
        matched.extend(
            record
            for record in page.records
            if matches_correlation(record, query.correlation_id, correlation_key)
        )
        logger.debug(
            f"History page {pages}: {len(page.records)} records, {len(matched)} matched so far"
        )

        next_token = page.next_token
        if not next_token:
            break

    if order_by_time:
        matched = _order_by_sample_time(matched)

    stats = FetchStats(
        pages=pages, records_seen=records_seen, records_matched=len(matched)
    )
    logger.info(
        f"Fetched {records_seen} positions for device {query.device_id} in {pages} pages, "
        f"{len(matched)} for {correlation_key}={query.correlation_id}"
    )
    return HistoryFetch(records=matched, stats=stats)

#!/usr/bin/env python3
"""
Firewall Logs - grouped statistics and raw log rows from the kernel log

Grouped mode reads the whole (cached) file, keeps the requested day and
aggregates by ip, port or country. Raw mode either searches the whole file
with field filters, or loads/tails the current day's entries from a cursor.
"""

import logging
from datetime import datetime
from typing import Callable, Iterable, Iterator, List, Optional

from aggregation import RecordAggregator, get_selector
from collectors.log_reader import LogFileUnavailable, LogReader
from geo import UNKNOWN_COUNTRY
from models import (Err, ErrorKind, FilterRequest, LogFileCursor, Ok,
                    ParseStats, RawLogRecord)
from parsers.log_line import LogEntry, parse_log_line

logger = logging.getLogger(__name__)


class FirewallLogCollector:
    """Turns kernel firewall log lines into grouped or raw results"""

    def __init__(self, reader: LogReader, classifier, geo,
                 aggregator: Optional[RecordAggregator] = None,
                 raw_limit: int = 50,
                 clock: Callable[[], datetime] = datetime.now):
        self.reader = reader
        self.classifier = classifier
        self.geo = geo
        self.aggregator = aggregator or RecordAggregator(classifier, geo)
        self.raw_limit = raw_limit
        self.clock = clock
        self.last_stats = ParseStats()

    def _unavailable(self, error: LogFileUnavailable) -> Err:
        return Err(ErrorKind.RESOURCE_UNAVAILABLE, f"Cannot open log file: {error.path}")

    # ------------------------------------------------------------------
    # Line selection
    # ------------------------------------------------------------------

    def _entries(self, lines: Iterable[str], stats: ParseStats) -> Iterator[LogEntry]:
        for line in lines:
            stats.lines += 1
            entry = parse_log_line(line)
            if entry is None:
                stats.skipped += 1
                continue
            stats.matched += 1
            yield entry

    @staticmethod
    def _on_day(entry: LogEntry, request: FilterRequest, reference: datetime) -> bool:
        if not entry.matches_date(request.month + 1, request.day):
            return False
        when = entry.infer_datetime(reference)
        return when is not None and when.year == request.year

    def _entries_for_day(self, lines, request: FilterRequest, reference: datetime,
                         stats: ParseStats) -> Iterator[LogEntry]:
        for entry in self._entries(lines, stats):
            if not entry.is_packet_record():
                stats.skipped += 1
                continue
            if self._on_day(entry, request, reference):
                stats.emitted += 1
                yield entry

    # ------------------------------------------------------------------
    # Grouped statistics
    # ------------------------------------------------------------------

    def fetch_grouped(self, request: FilterRequest):
        """Top sources, destination ports or countries of the requested day"""
        selector = get_selector(request.group, self.geo)
        if selector is None:
            return Err(ErrorKind.INVALID_REQUEST, f"Invalid group: {request.group}")

        try:
            snapshot = self.reader.read_all()
        except LogFileUnavailable as e:
            return self._unavailable(e)

        stats = ParseStats()
        reference = datetime.fromtimestamp(snapshot.mtime)
        entries = self._entries_for_day(snapshot.lines, request, reference, stats)
        result = self.aggregator.aggregate(entries, selector, request.limit)

        self.last_stats = stats
        logger.debug(f"Grouped scan: {stats.lines} lines, {stats.matched} kernel lines, "
                     f"{stats.emitted} on {request.year}-{request.month + 1:02d}-{request.day:02d}")
        return result

    # ------------------------------------------------------------------
    # Raw rows
    # ------------------------------------------------------------------

    @staticmethod
    def _matches_search(entry: LogEntry, request: FilterRequest) -> bool:
        if request.ip and request.ip not in entry.src_ip and request.ip not in entry.dst_ip:
            return False

        if request.port:
            if not request.port.isdigit() or not 1 <= int(request.port) <= 65535:
                return False
            if request.port not in (entry.src_port, entry.dst_port):
                return False

        if request.interface and request.interface not in (entry.in_interface, entry.out_interface):
            return False

        if request.action and entry.action != request.action:
            return False

        if request.protocol and not entry.protocol.lower().startswith(request.protocol.lower()):
            return False

        return True

    def _build_raw_record(self, entry: LogEntry, when: Optional[datetime],
                          request: FilterRequest) -> RawLogRecord:
        src_zone, src_color = self.classifier.classify(entry.src_ip)
        dst_zone, dst_color = self.classifier.classify(entry.dst_ip)
        src_country = self.geo.country_code(entry.src_ip)
        dst_country = self.geo.country_code(entry.dst_ip)
        src_port = entry.src_port or ''
        dst_port = entry.dst_port or ''
        port = src_port or dst_port

        return RawLogRecord(
            timestamp=f"{entry.stamp} {when.year}" if when else entry.stamp,
            action=entry.action,
            in_interface=entry.in_interface,
            out_interface=entry.out_interface,
            src_ip=entry.src_ip,
            dst_ip=entry.dst_ip,
            protocol=entry.protocol,
            src_port=src_port,
            dst_port=dst_port,
            src_zone=src_zone,
            src_zone_color=src_color,
            dst_zone=dst_zone,
            dst_zone_color=dst_color,
            src_country=src_country,
            dst_country=dst_country,
            src_flag_icon=self.geo.flag_icon(src_country or UNKNOWN_COUNTRY),
            dst_flag_icon=self.geo.flag_icon(dst_country or UNKNOWN_COUNTRY),
            details_url_ip=(f"/cgi-bin/logs.cgi/showrequestfromip.dat?ip={entry.src_ip}"
                            f"&MONTH={request.month}&DAY={request.day}"),
            details_url_port=(f"/cgi-bin/logs.cgi/showrequestfromport.dat?port={port}"
                              f"&MONTH={request.month}&DAY={request.day}") if port else '',
            details_url_country=f"/cgi-bin/country.cgi#{src_country}" if src_country else '',
            epoch=when.timestamp() if when else 0.0,
        )

    def fetch_raw(self, request: FilterRequest, cursor: Optional[LogFileCursor] = None):
        """
        Raw log rows, newest first.

        - search: the whole file, field filters, no date filter, no cap
        - no cursor: the whole file, requested day, most recent rows
        - cursor: only lines appended since the cursor, requested day,
          optional freshness window (request.refresh seconds)

        Returns:
            Ok((records, cursor)) where cursor is to be passed to the next poll
        """
        now = self.clock()
        searching = request.search_enabled
        tailing = not searching and cursor is not None

        try:
            if tailing:
                lines, new_cursor = self.reader.read_from(cursor)
                reference = now
            else:
                snapshot = self.reader.read_all()
                lines = snapshot.lines
                new_cursor = LogFileCursor(file_path=self.reader.path,
                                           byte_offset=snapshot.size, inode=snapshot.inode)
                reference = datetime.fromtimestamp(snapshot.mtime)
        except LogFileUnavailable as e:
            return self._unavailable(e)

        stats = ParseStats()
        records: List[RawLogRecord] = []
        for entry in self._entries(lines, stats):
            if not entry.is_packet_record():
                stats.skipped += 1
                continue

            if not searching and not self._on_day(entry, request, reference):
                continue

            when = entry.infer_datetime(reference)
            if tailing and request.refresh:
                if when is None or (now - when).total_seconds() > request.refresh:
                    continue

            if searching and not self._matches_search(entry, request):
                continue

            records.append(self._build_raw_record(entry, when, request))

        if not searching:
            records = records[-self.raw_limit:]

        # Newest first; equal timestamps keep the later file line first
        records.reverse()
        records.sort(key=lambda r: r.epoch, reverse=True)

        stats.emitted = len(records)
        self.last_stats = stats
        logger.info(f"Raw logs: {stats.lines} lines, {stats.matched} kernel lines, "
                    f"{stats.emitted} rows ({'search' if searching else 'tail' if tailing else 'load'})")
        return Ok((records, new_cursor))

    # ------------------------------------------------------------------
    # Filter values
    # ------------------------------------------------------------------

    def fetch_filters(self, request: FilterRequest):
        """Interfaces and actions seen on the requested day"""
        try:
            snapshot = self.reader.read_all()
        except LogFileUnavailable as e:
            return self._unavailable(e)

        interfaces = set()
        actions = set()
        reference = datetime.fromtimestamp(snapshot.mtime)
        for entry in self._entries_for_day(snapshot.lines, request, reference, ParseStats()):
            in_if, out_if = entry.in_interface, entry.out_interface
            interfaces.update(i for i in (in_if, out_if) if i)
            if not entry.action:
                continue
            if request.interface and request.interface not in (in_if, out_if):
                continue
            actions.add(entry.action)

        logger.debug(f"Filters: {len(interfaces)} interfaces, {len(actions)} actions")
        return Ok({'interfaces': sorted(interfaces), 'actions': sorted(actions)})

#!/usr/bin/env python3
"""
Connections - parses the connection-tracking table into decorated records
"""

import logging
import shlex
import subprocess
from typing import Iterable, List, Optional

from geo import UNKNOWN_COUNTRY
from models import (ConnectionRecord, Err, ErrorKind, FilterRequest, Ok,
                    ParseStats)
from parsers.conntrack_line import ConntrackEntry, parse_conntrack_line, ttl_of

logger = logging.getLogger(__name__)


def _to_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class ConnectionCollector:
    """Runs the conntrack dump and turns its lines into ConnectionRecords"""

    def __init__(self, classifier, geo,
                 command: str = '/usr/local/bin/getconntracktable',
                 timeout: int = 10):
        self.classifier = classifier
        self.geo = geo
        self.command = command
        self.timeout = timeout
        self.last_stats = ParseStats()

    def snapshot(self):
        """Raw dump lines, or Err when the dump tool cannot be run"""
        try:
            result = subprocess.run(
                shlex.split(self.command),
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Conntrack dump timed out after {self.timeout}s")
            return Err(ErrorKind.RESOURCE_UNAVAILABLE, "Connection table dump timed out")
        except OSError as e:
            logger.warning(f"Conntrack dump failed: {e}")
            return Err(ErrorKind.RESOURCE_UNAVAILABLE, f"Cannot run {self.command}: {e}")

        if result.returncode != 0:
            message = result.stderr.strip() or f"exit status {result.returncode}"
            logger.warning(f"Conntrack dump failed: {message}")
            return Err(ErrorKind.RESOURCE_UNAVAILABLE, f"Connection table dump failed: {message}")

        return Ok(result.stdout.splitlines())

    @staticmethod
    def _ports(entry: ConntrackEntry):
        if entry.is_icmp:
            src_port = f"{entry.forward['type']}/{entry.forward.get('code') or '0'}"
            dst_port = f"{entry.reply['type']}/{entry.reply.get('code') or '0'}"
            return src_port, dst_port
        return entry.forward['sport'], entry.forward['dport']

    def _matches(self, record: ConnectionRecord, request: FilterRequest) -> bool:
        if request.zones and record.src_zone not in request.zones and record.dst_zone not in request.zones:
            return False
        if request.ip and request.ip not in record.src_ip and request.ip not in record.dst_ip:
            return False
        if request.port and request.port not in (record.src_port, record.dst_port):
            return False
        if request.protocol and request.protocol.lower() not in record.protocol.lower():
            return False
        return True

    def parse(self, lines: Iterable[str], request: Optional[FilterRequest] = None) -> List[ConnectionRecord]:
        """
        Parse dump lines into records, longest remaining TTL first.

        When the request has search enabled, records failing any of its
        filters (zones, ip, port, protocol) are dropped.
        """
        filtering = request is not None and request.search_enabled
        stats = ParseStats()
        records: List[ConnectionRecord] = []

        for line in sorted(lines, key=ttl_of, reverse=True):
            if not line.strip():
                continue
            stats.lines += 1
            entry = parse_conntrack_line(line)
            if entry is None:
                stats.skipped += 1
                logger.debug(f"Skipping conntrack line: {line}")
                continue
            stats.matched += 1

            src_ip, dst_ip = entry.forward['src'], entry.forward['dst']
            src_port, dst_port = self._ports(entry)
            src_zone, src_color = self.classifier.classify(src_ip)
            dst_zone, dst_color = self.classifier.classify(dst_ip)

            record = ConnectionRecord(
                protocol=entry.protocol,
                src_ip=src_ip,
                dst_ip=dst_ip,
                src_port=src_port,
                dst_port=dst_port,
                bytes_in=_to_int(entry.reply.get('bytes')),
                bytes_out=_to_int(entry.forward.get('bytes')),
                state=entry.state,
                ttl_seconds=entry.ttl,
                assured=entry.assured,
                src_zone=src_zone,
                src_zone_color=src_color,
                dst_zone=dst_zone,
                dst_zone_color=dst_color,
            )
            if filtering and not self._matches(record, request):
                continue

            record.src_country = self.geo.country_code(src_ip)
            record.dst_country = self.geo.country_code(dst_ip)
            record.src_flag_icon = self.geo.flag_icon(record.src_country or UNKNOWN_COUNTRY)
            record.dst_flag_icon = self.geo.flag_icon(record.dst_country or UNKNOWN_COUNTRY)
            records.append(record)

        stats.emitted = len(records)
        self.last_stats = stats
        logger.info(f"Connections: {stats.lines} lines, {stats.skipped} skipped, {stats.emitted} returned")
        return records

    def fetch(self, request: Optional[FilterRequest] = None):
        """Current connection table; an empty list is a valid result"""
        dump = self.snapshot()
        if not dump.ok:
            return dump
        return Ok(self.parse(dump.value, request))

#!/usr/bin/env python3
"""
Record Aggregator - groups records by a key, counts and ranks them

Works on any record type exposing ``src_ip`` and ``dst_port`` (parsed log
entries and connection records alike). The group key is chosen by a
KeySelector; results are sorted by count (ties keep first-seen order),
truncated to a limit and decorated with zone colour and flag.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from geo import UNKNOWN_COUNTRY
from models import AggregationRecord, Err, ErrorKind, Ok

logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "No data found for the specified parameters"


class KeySelector:
    """Computes the group key of a record"""
    name = ''

    def select(self, record) -> Tuple[Optional[str], Optional[str]]:
        """Return (group key, address used for colour decoration)"""
        raise NotImplementedError

    def info_url(self, key: str) -> str:
        return ''


class IpSelector(KeySelector):
    name = 'ip'

    def select(self, record):
        src_ip = getattr(record, 'src_ip', None)
        return src_ip, src_ip

    def info_url(self, key):
        return f"/cgi-bin/ipinfo.cgi?ip={key}"


class PortSelector(KeySelector):
    name = 'port'

    def select(self, record):
        return getattr(record, 'dst_port', None), getattr(record, 'src_ip', None)

    def info_url(self, key):
        return f"https://isc.sans.edu/port.html?port={key}"


class CountrySelector(KeySelector):
    name = 'country'

    def __init__(self, geo):
        self.geo = geo

    def select(self, record):
        src_ip = getattr(record, 'src_ip', None)
        code = self.geo.country_code(src_ip) if src_ip else ''
        return code or UNKNOWN_COUNTRY, src_ip

    def info_url(self, key):
        return f"/cgi-bin/country.cgi#{key}"


def get_selector(group: str, geo) -> Optional[KeySelector]:
    """Selector for a group name, None if the group is unknown"""
    if group == 'ip':
        return IpSelector()
    if group == 'port':
        return PortSelector()
    if group == 'country':
        return CountrySelector(geo)
    return None


class RecordAggregator:
    """Groups, counts, sorts and decorates records"""

    def __init__(self, classifier, geo, default_limit: int = 10):
        self.classifier = classifier
        self.geo = geo
        self.default_limit = default_limit

    def aggregate(self, records: Iterable, selector: KeySelector, limit: Optional[int] = None):
        """
        Aggregate records by the selector's key.

        Returns:
            Ok([AggregationRecord, ...]) sorted by count descending, at most
            ``limit`` long, or Err(NO_DATA) if no record produced a key
        """
        if not limit or limit <= 0:
            limit = self.default_limit

        counter: Dict[str, int] = {}
        decoration: Dict[str, Optional[str]] = {}
        total = 0

        for record in records:
            key, address = selector.select(record)
            if key is None or key == '':
                continue
            counter[key] = counter.get(key, 0) + 1
            decoration[key] = address
            total += 1

        if total == 0:
            logger.info(f"No records to aggregate by {selector.name}")
            return Err(ErrorKind.NO_DATA, NO_DATA_MESSAGE)

        # Stable sort: equal counts keep first-seen order
        ranked = sorted(counter, key=lambda k: counter[k], reverse=True)[:limit]

        results: List[AggregationRecord] = []
        for key in ranked:
            zone_name, zone_color, flag_icon = self._decorate(selector, key, decoration.get(key))
            results.append(AggregationRecord(
                key=key,
                count=counter[key],
                percent=round(100.0 * counter[key] / total, 1),
                key_color=zone_color,
                key_zone=zone_name,
                flag_icon=flag_icon,
                info_url=selector.info_url(key),
            ))

        logger.info(f"Aggregated by {selector.name}: {len(results)} of {len(counter)} keys, total={total}")
        return Ok(results)

    def _decorate(self, selector: KeySelector, key: str, address: Optional[str]):
        if selector.name == 'ip':
            zone_name, zone_color = self.classifier.classify(key)
            country = self.geo.country_code(key) or UNKNOWN_COUNTRY
            return zone_name, zone_color, self.geo.flag_icon(country)

        zone_color = self.classifier.classify(address)[1] if address else ''
        if selector.name == 'country':
            return '', zone_color, self.geo.flag_icon(key)
        return '', zone_color, ''

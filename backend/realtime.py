#!/usr/bin/env python3
"""
Realtime Service - wires classifier, readers and collectors together and
dispatches poll requests by data type.
"""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from aggregation import RecordAggregator
from collectors import (ConnectionCollector, FirewallLogCollector,
                        HardwareCollector, LogReader)
from config import get_config
from geo import GeoLocator
from models import Err, ErrorKind, FilterRequest, LogFileCursor
from zones import ConfigWatcher, NetworkSources, ZoneClassifier

logger = logging.getLogger(__name__)

DATA_TYPES = ('connections', 'hardware', 'firewalllogs',
              'firewalllogs_raw', 'firewalllogs_filters')

# HTTP status per error kind
ERROR_STATUS = {
    ErrorKind.NO_DATA: 200,
    ErrorKind.INVALID_REQUEST: 400,
    ErrorKind.RESOURCE_UNAVAILABLE: 503,
}


class RealtimeService:
    """Owns the long-lived state (caches) shared by all polls of one process"""

    def __init__(self, classifier: ZoneClassifier, geo: GeoLocator,
                 log_reader: LogReader, connections: ConnectionCollector,
                 hardware: Optional[HardwareCollector] = None,
                 watcher: Optional[ConfigWatcher] = None,
                 default_limit: int = 10, raw_limit: int = 50):
        self.classifier = classifier
        self.geo = geo
        self.watcher = watcher
        self.default_limit = default_limit
        self.aggregator = RecordAggregator(classifier, geo, default_limit=default_limit)
        self.firewall_logs = FirewallLogCollector(log_reader, classifier, geo,
                                                  aggregator=self.aggregator,
                                                  raw_limit=raw_limit)
        self.connections = connections
        self.hardware = hardware or HardwareCollector()

        self.handlers: Dict[str, Callable[..., Any]] = {
            'connections': self.connections.fetch,
            'hardware': self.hardware.fetch,
            'firewalllogs': self.firewall_logs.fetch_grouped,
            'firewalllogs_raw': self.firewall_logs.fetch_raw,
            'firewalllogs_filters': self.firewall_logs.fetch_filters,
        }

    @classmethod
    def from_config(cls, config=None) -> 'RealtimeService':
        config = config or get_config()
        sources = NetworkSources(config.SETTINGS_ROOT,
                                 route_command=config.ROUTE_COMMAND,
                                 timeout=config.COMMAND_TIMEOUT)
        classifier = ZoneClassifier(sources, zone_colors=config.ZONE_COLORS)
        geo = GeoLocator(config.GEOIP_DATABASE, flag_base=config.FLAG_ICON_BASE)
        return cls(
            classifier=classifier,
            geo=geo,
            log_reader=LogReader(config.FIREWALL_LOG_PATH),
            connections=ConnectionCollector(classifier, geo,
                                            command=config.CONNTRACK_COMMAND,
                                            timeout=config.COMMAND_TIMEOUT),
            watcher=ConfigWatcher(classifier),
            default_limit=config.DEFAULT_GROUP_LIMIT,
            raw_limit=config.RAW_LOG_LIMIT,
        )

    def refresh_topology(self) -> bool:
        """Rebuild zone bindings if the network configuration changed"""
        if self.watcher is None:
            return False
        return self.watcher.check()

    def fetch_data(self, data_type: str, request: Optional[FilterRequest] = None,
                   cursor: Optional[LogFileCursor] = None):
        """Dispatch a poll to the handler for data_type"""
        handler = self.handlers.get(data_type)
        if handler is None:
            logger.info(f"Invalid data_type: {data_type}")
            return Err(ErrorKind.INVALID_REQUEST, f"Invalid data_type: {data_type}")

        request = request or FilterRequest(limit=self.default_limit)
        logger.debug(f"Fetching {data_type} with {request}")

        if data_type == 'firewalllogs_raw':
            result = handler(request, cursor)
        else:
            result = handler(request)

        if result.ok:
            rows = result.value[0] if data_type == 'firewalllogs_raw' else result.value
            size = len(rows) if isinstance(rows, (list, tuple, dict)) else 1
            logger.info(f"Handler for {data_type} returned {size} entries")
        else:
            logger.info(f"Handler for {data_type} failed: {result.kind.value}: {result.message}")
        return result


def to_json(result) -> Tuple[Any, int]:
    """
    Serialise a result for the web UI.

    Errors keep the legacy single-element list shape ([{'error': ...}]);
    records become lists of plain dictionaries.
    """
    if isinstance(result, Err):
        return [result.to_dict()], ERROR_STATUS[result.kind]
    return _plain(result.value), 200


def _plain(value):
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


# Singleton instance
_service_instance = None


def get_service(config=None) -> RealtimeService:
    """Get singleton service instance, built from the FLASK_ENV config unless one is given"""
    global _service_instance
    if _service_instance is None:
        _service_instance = RealtimeService.from_config(config)
    return _service_instance


def set_service(service: Optional[RealtimeService]):
    """Replace the singleton service"""
    global _service_instance
    _service_instance = service

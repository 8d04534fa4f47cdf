"""
Data models for the realtime firewall backend
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field, asdict

from formatting import format_bytes, format_time


@dataclass(frozen=True)
class ZoneBinding:
    """A subnet bound to a zone colour"""
    network: str  # CIDR
    color: str


@dataclass(frozen=True)
class AggregationRecord:
    """One group of a grouped log aggregation"""
    key: str
    count: int
    percent: float
    key_color: str = ''
    key_zone: str = ''
    flag_icon: str = ''
    info_url: str = ''

    def to_dict(self):
        """Convert to the dictionary shape the web UI table consumes"""
        return {
            'key': self.key,
            'count': self.count,
            'percent': self.percent,
            'key_colour': self.key_color,
            'key_zone': self.key_zone,
            'zone_colour': self.key_color,
            'zone_name': self.key_zone,
            'key_flag_icon': self.flag_icon,
            'key_info_url': self.info_url,
        }


@dataclass
class RawLogRecord:
    """A single firewall log line, decorated for display"""
    timestamp: str
    action: str
    in_interface: str
    out_interface: str
    src_ip: str
    dst_ip: str
    protocol: str
    src_port: str = ''
    dst_port: str = ''
    src_zone: str = ''
    src_zone_color: str = ''
    dst_zone: str = ''
    dst_zone_color: str = ''
    src_country: str = ''
    dst_country: str = ''
    src_flag_icon: str = ''
    dst_flag_icon: str = ''
    details_url_ip: str = ''
    details_url_port: str = ''
    details_url_country: str = ''
    epoch: float = 0.0

    def to_dict(self):
        return {
            'timestamp': self.timestamp,
            'action': self.action,
            'in': self.in_interface,
            'out': self.out_interface,
            'src_ip': self.src_ip,
            'dst_ip': self.dst_ip,
            'protocol': self.protocol,
            'src_port': self.src_port,
            'dst_port': self.dst_port,
            'src_zone': self.src_zone,
            'src_zone_colour': self.src_zone_color,
            'src_flag_icon': self.src_flag_icon,
            'dst_zone': self.dst_zone,
            'dst_zone_colour': self.dst_zone_color,
            'dst_flag_icon': self.dst_flag_icon,
            'src_country': self.src_country,
            'dst_country': self.dst_country,
            'details_url_ip': self.details_url_ip,
            'details_url_port': self.details_url_port,
            'details_url_country': self.details_url_country,
        }


@dataclass
class ConnectionRecord:
    """A connection-tracking table entry, decorated for display"""
    protocol: str
    src_ip: str
    dst_ip: str
    src_port: str
    dst_port: str
    bytes_in: int
    bytes_out: int
    state: str
    ttl_seconds: int
    assured: str = ''
    src_zone: str = ''
    src_zone_color: str = ''
    dst_zone: str = ''
    dst_zone_color: str = ''
    src_country: str = ''
    dst_country: str = ''
    src_flag_icon: str = ''
    dst_flag_icon: str = ''

    def to_dict(self):
        return {
            'protocol': self.protocol,
            'src_ip': self.src_ip,
            'src_ip_colour': self.src_zone_color,
            'src_zone': self.src_zone,
            'src_port': self.src_port,
            'src_port_colour': self.src_zone_color,
            'dst_ip': self.dst_ip,
            'dst_ip_colour': self.dst_zone_color,
            'dst_zone': self.dst_zone,
            'dst_port': self.dst_port,
            'dst_port_colour': self.dst_zone_color,
            'bytes_in': format_bytes(self.bytes_in),
            'bytes_out': format_bytes(self.bytes_out),
            'bytes_in_raw': self.bytes_in,
            'bytes_out_raw': self.bytes_out,
            'state': self.state,
            'assured': self.assured,
            'ttl': format_time(self.ttl_seconds),
            'ttl_raw': self.ttl_seconds,
            'src_flag_icon': self.src_flag_icon,
            'dst_flag_icon': self.dst_flag_icon,
            'src_country': self.src_country,
            'dst_country': self.dst_country,
        }


@dataclass
class LogFileCursor:
    """Read position in a log file, owned by the caller between polls"""
    file_path: str
    byte_offset: int = 0
    inode: Optional[int] = None

    def to_dict(self):
        return asdict(self)


@dataclass
class ParseStats:
    """Diagnostic counters for line parsing"""
    lines: int = 0
    matched: int = 0
    skipped: int = 0
    emitted: int = 0

    def reset(self):
        self.lines = self.matched = self.skipped = self.emitted = 0


class ErrorKind(str, Enum):
    NO_DATA = 'no_data'
    RESOURCE_UNAVAILABLE = 'resource_unavailable'
    INVALID_REQUEST = 'invalid_request'


@dataclass
class Ok:
    """Successful result"""
    value: Any

    @property
    def ok(self) -> bool:
        return True


@dataclass
class Err:
    """Failed result, tagged with the kind of failure"""
    kind: ErrorKind
    message: str

    @property
    def ok(self) -> bool:
        return False

    def to_dict(self):
        return {'error': self.message, 'kind': self.kind.value}


GROUPS = ('ip', 'port', 'country')


def _to_int(value, default: Optional[int] = None) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def _to_text(value) -> str:
    if value is None or isinstance(value, (list, dict)):
        return ''
    return str(value).strip()


def _to_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).lower() in ('1', 'true', 't', 'on', 'yes')


@dataclass
class FilterRequest:
    """
    Filter parameters for a single poll.

    month is 0-based (January == 0), matching the firewall's log pages.
    """
    group: str = 'ip'
    limit: int = 10
    day: int = 0
    month: int = 0
    year: int = 0
    search_enabled: bool = False
    ip: str = ''
    port: str = ''
    protocol: str = ''
    zones: List[str] = field(default_factory=list)
    interface: str = ''
    action: str = ''
    refresh: int = 0

    def __post_init__(self):
        self.normalize()

    def normalize(self, now: Optional[datetime] = None, default_limit: int = 10):
        """Substitute safe defaults for missing or invalid values"""
        now = now or datetime.now()

        self.group = _to_text(self.group).lower() or 'ip'
        limit = _to_int(self.limit)
        self.limit = limit if limit and limit > 0 else default_limit

        year = _to_int(self.year)
        self.year = year if year and 1970 <= year <= 9999 else now.year
        month = _to_int(self.month)
        self.month = month if month is not None and 0 <= month <= 11 else now.month - 1
        day = _to_int(self.day)
        self.day = day if day and 1 <= day <= 31 else now.day

        refresh = _to_int(self.refresh, 0)
        self.refresh = refresh if refresh > 0 else 0
        self.ip = _to_text(self.ip)
        self.port = _to_text(self.port)
        self.protocol = _to_text(self.protocol)
        self.interface = _to_text(self.interface)
        self.action = _to_text(self.action)
        zones = self.zones if isinstance(self.zones, (list, tuple)) else []
        self.zones = [_to_text(z) for z in zones if _to_text(z)]
        return self

    @classmethod
    def from_params(cls, params: Dict[str, Any], default_limit: int = 10) -> 'FilterRequest':
        """Build a request from a flat parameter mapping (query string or JSON body)"""
        zones = params.get('zones') or []
        if isinstance(zones, str):
            zones = [z.strip() for z in zones.split(',')]

        request = cls(
            group=params.get('group') or 'ip',
            limit=params.get('limit') or default_limit,
            day=params.get('day'),
            month=params.get('month'),
            year=params.get('year'),
            search_enabled=_to_bool(params.get('search_enabled', params.get('is_search', False))),
            ip=params.get('ip') or params.get('search_ip') or '',
            port=params.get('port') or params.get('search_port') or '',
            protocol=params.get('protocol') or params.get('search_protocol') or '',
            zones=zones,
            interface=params.get('interface') or params.get('search_interface') or '',
            action=params.get('action') or params.get('search_action') or '',
            refresh=params.get('refresh') or 0,
        )
        return request.normalize(default_limit=default_limit)

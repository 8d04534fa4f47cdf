"""Line parsers for firewall logs and the conntrack dump"""

from .log_line import LogEntry, parse_log_line, MONTHS
from .conntrack_line import ConntrackEntry, parse_conntrack_line, ttl_of

__all__ = ['LogEntry', 'parse_log_line', 'MONTHS',
           'ConntrackEntry', 'parse_conntrack_line', 'ttl_of']

"""Data collectors: connection table, firewall logs and host hardware"""

from .log_reader import LogReader, LogFileUnavailable, LogSnapshot
from .firewall_logs import FirewallLogCollector
from .connections import ConnectionCollector
from .hardware import HardwareCollector

__all__ = ['LogReader', 'LogFileUnavailable', 'LogSnapshot',
           'FirewallLogCollector', 'ConnectionCollector', 'HardwareCollector']

#!/usr/bin/env python3
"""
Network Sources - readers for the firewall's network configuration

Every reader is optional: a missing or unreadable file (or a failing
command) yields nothing instead of raising.
"""

import ipaddress
import logging
import re
import shlex
import subprocess
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

ROUTE_PREFIX_RE = re.compile(r'^(\d+\.\d+\.\d+\.\d+/\d+)')


def read_hash(path: Path) -> Dict[str, str]:
    """Read a KEY=VALUE settings file"""
    settings: Dict[str, str] = {}
    try:
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#') or '=' not in line:
                    continue
                key, value = line.split('=', 1)
                settings[key.strip()] = value.strip().strip('\'"')
    except OSError as e:
        logger.debug(f"Settings file not readable: {path}: {e}")
    return settings


def read_hash_array(path: Path) -> Dict[str, List[str]]:
    """Read a 'key,field1,field2,...' file into key -> [field1, field2, ...]"""
    rows: Dict[str, List[str]] = {}
    for fields in read_csv_lines(path):
        if fields and fields[0]:
            rows[fields[0]] = fields[1:]
    return rows


def read_csv_lines(path: Path) -> List[List[str]]:
    """Read a comma separated file as a list of field lists"""
    lines: List[List[str]] = []
    try:
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            for line in f:
                line = line.rstrip('\r\n')
                if line.strip():
                    lines.append(line.split(','))
    except OSError as e:
        logger.debug(f"Config file not readable: {path}: {e}")
    return lines


def field(fields: List[str], index: int) -> str:
    return fields[index].strip() if len(fields) > index else ''


class NetworkSources:
    """Reads interface, routing and VPN configuration below a settings root"""

    ETHERNET_SETTINGS = ('ethernet', 'settings')
    ETHERNET_ALIASES = ('ethernet', 'aliases')
    RED_ADDRESS = ('red', 'local-ipaddress')
    WIREGUARD_SETTINGS = ('wireguard', 'settings')
    WIREGUARD_PEERS = ('wireguard', 'peers')
    OPENVPN_SETTINGS = ('ovpn', 'settings')
    OPENVPN_CCD = ('ovpn', 'ccd.conf')
    OPENVPN_CONFIG = ('ovpn', 'ovpnconfig')
    IPSEC_CONFIG = ('vpn', 'config')

    def __init__(self, settings_root: str = '/var/ipfire',
                 route_command: str = 'ip route show', timeout: int = 10):
        self.root = Path(settings_root)
        self.route_command = route_command
        self.timeout = timeout

    def path(self, parts) -> Path:
        return self.root.joinpath(*parts)

    def watched_paths(self) -> List[Path]:
        """All files whose content feeds the zone bindings"""
        return [self.path(p) for p in (
            self.ETHERNET_SETTINGS, self.ETHERNET_ALIASES, self.RED_ADDRESS,
            self.WIREGUARD_SETTINGS, self.WIREGUARD_PEERS,
            self.OPENVPN_SETTINGS, self.OPENVPN_CCD, self.OPENVPN_CONFIG,
            self.IPSEC_CONFIG,
        )]

    def ethernet_settings(self) -> Dict[str, str]:
        return read_hash(self.path(self.ETHERNET_SETTINGS))

    def red_address(self) -> Optional[str]:
        path = self.path(self.RED_ADDRESS)
        try:
            address = path.read_text(encoding='utf-8').strip()
        except OSError:
            return None
        try:
            ipaddress.IPv4Address(address)
        except ValueError:
            logger.debug(f"Ignoring invalid red address {address!r}")
            return None
        return address

    def aliases(self) -> List[str]:
        """Enabled alias addresses of the red interface"""
        aliases = []
        for fields in read_csv_lines(self.path(self.ETHERNET_ALIASES)):
            address = field(fields, 0)
            if address and field(fields, 1) == 'on':
                aliases.append(address)
        return aliases

    def routes(self) -> List[str]:
        """Current kernel routing table, one route per line"""
        try:
            result = subprocess.run(
                shlex.split(self.route_command),
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Route listing timed out: {self.route_command}")
            return []
        except OSError as e:
            logger.warning(f"Route listing failed: {e}")
            return []

        if result.returncode != 0:
            logger.warning(f"Route listing failed: {result.stderr.strip()}")
            return []
        return result.stdout.splitlines()

    def routed_networks(self, routes: List[str], device_pattern: str) -> List[str]:
        """Destination prefixes of routes going via a device matching the pattern"""
        dev_re = re.compile(r'\bdev ' + device_pattern + r'(?:\s|$)')
        networks = []
        for route in routes:
            if not dev_re.search(route):
                continue
            match = ROUTE_PREFIX_RE.match(route)
            if match:
                networks.append(match.group(1))
        return networks

    def wireguard_networks(self) -> List[str]:
        networks = []
        pool = read_hash(self.path(self.WIREGUARD_SETTINGS)).get('CLIENT_POOL')
        if pool:
            networks.append(pool)
        for fields in read_hash_array(self.path(self.WIREGUARD_PEERS)).values():
            networks.extend(n for n in field(fields, 8).split('|') if n)
        return networks

    def openvpn_networks(self) -> List[str]:
        networks = []
        subnet = read_hash(self.path(self.OPENVPN_SETTINGS)).get('DOVPN_SUBNET')
        if subnet:
            networks.append(subnet)
        for fields in read_csv_lines(self.path(self.OPENVPN_CCD)):
            if field(fields, 3):
                networks.append(field(fields, 3))
        return networks

    def openvpn_n2n_networks(self) -> List[str]:
        networks = []
        for fields in read_csv_lines(self.path(self.OPENVPN_CONFIG)):
            if field(fields, 4) == 'net' and field(fields, 12):
                networks.append(field(fields, 12))
        return networks

    def ipsec_networks(self) -> List[str]:
        networks = []
        for fields in read_csv_lines(self.path(self.IPSEC_CONFIG)):
            networks.extend(n for n in field(fields, 12).split('|') if n)
        return networks

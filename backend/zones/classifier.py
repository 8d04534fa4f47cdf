#!/usr/bin/env python3
"""
Zone Classifier - maps IPv4 addresses to firewall network zones

Bindings (subnet -> zone colour) are built from the live network
configuration. Lookups pick the most specific (longest prefix) subnet
containing the address and are cached per address until the next rebuild.
"""

import ipaddress
import logging
import re
import threading
from typing import Dict, List, Optional, Tuple

from models import ZoneBinding
from zones.network_sources import NetworkSources

logger = logging.getLogger(__name__)

ZONE_NAMES = ('LAN', 'INTERNET', 'DMZ', 'Wireless', 'IPFire',
              'VPN', 'WireGuard', 'OpenVPN', 'Multicast')

DEFAULT_ZONE_COLORS = {
    'LAN': '#339933',
    'INTERNET': '#993333',
    'DMZ': '#FF9933',
    'Wireless': '#333399',
    'IPFire': '#000000',
    'VPN': '#990099',
    'WireGuard': '#FF007F',
    'OpenVPN': '#339999',
    'Multicast': '#A0A0A0',
}

LOOPBACK_NETWORK = '127.0.0.0/8'
MULTICAST_NETWORK = '224.0.0.0/3'

# Interface colour -> zone, per colour-named interface
INTERFACE_ZONES = (
    ('GREEN', 'LAN'),
    ('BLUE', 'Wireless'),
    ('ORANGE', 'DMZ'),
)

# Tunnel devices matched by name pattern
TUNNEL_DEVICE_ZONES = (
    ('gre[0-9]+', 'VPN'),
    ('vti[0-9]+', 'VPN'),
    ('tun[0-9]+', 'OpenVPN'),
)

ZoneInfo = Tuple[str, str]


def parse_ipv4(ip) -> Optional[ipaddress.IPv4Address]:
    """Parse a dotted-quad address, returning None for anything else"""
    if not isinstance(ip, str) or ip.count('.') != 3:
        return None
    ip = ip.strip()
    # Leading zeros are ambiguous (octal on some stacks)
    if any(len(octet) > 1 and octet.startswith('0') for octet in ip.split('.')):
        return None
    try:
        return ipaddress.IPv4Address(ip)
    except ValueError:
        return None


class ZoneClassifier:
    """Longest-prefix-match classifier with a per-address lookup cache"""

    def __init__(self, sources: Optional[NetworkSources] = None,
                 zone_colors: Optional[Dict[str, str]] = None,
                 build: bool = True):
        self.sources = sources
        self.zone_colors: Dict[str, str] = {
            name: (zone_colors or {}).get(name, DEFAULT_ZONE_COLORS[name])
            for name in ZONE_NAMES
        }
        self._networks: Dict[str, str] = {}
        self._lookup_table: Tuple[Tuple[ipaddress.IPv4Network, str], ...] = ()
        self._cache: Dict[str, ZoneInfo] = {}
        self.lock = threading.RLock()

        if build:
            self.rebuild()

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def rebuild(self) -> int:
        """Rebuild the bindings from the network configuration and clear the cache"""
        networks = self._build_networks()
        self.load_bindings(networks)
        logger.info(f"Zone bindings rebuilt: {len(networks)} networks")
        return len(networks)

    def load_bindings(self, networks: Dict[str, str]):
        """Replace the bindings with an explicit CIDR -> colour mapping"""
        table = []
        for cidr, color in networks.items():
            try:
                network = ipaddress.IPv4Network(cidr, strict=False)
            except ValueError:
                logger.debug(f"Skipping invalid network binding {cidr!r}")
                continue
            table.append((network, color))

        # Most specific first; sorted() is stable so equal prefixes keep insertion order
        table = tuple(sorted(table, key=lambda entry: entry[0].prefixlen, reverse=True))

        with self.lock:
            self._networks = dict(networks)
            self._lookup_table = table
            self._cache = {}

    def invalidate(self):
        """Drop cached lookups without touching the bindings"""
        with self.lock:
            self._cache = {}

    def _build_networks(self) -> Dict[str, str]:
        colors = self.zone_colors
        networks: Dict[str, str] = {
            LOOPBACK_NETWORK: colors['IPFire'],
            MULTICAST_NETWORK: colors['Multicast'],
        }
        if self.sources is None:
            return networks

        settings = self.sources.ethernet_settings()
        for prefix, zone in INTERFACE_ZONES:
            address = settings.get(f'{prefix}_ADDRESS')
            netaddress = settings.get(f'{prefix}_NETADDRESS')
            netmask = settings.get(f'{prefix}_NETMASK')
            if address:
                networks[f'{address}/32'] = colors['IPFire']
            if netaddress and netmask:
                networks[f'{netaddress}/{netmask}'] = colors[zone]

        red_address = self.sources.red_address()
        if red_address:
            networks[f'{red_address}/32'] = colors['IPFire']

        for alias in self.sources.aliases():
            networks[f'{alias}/32'] = colors['IPFire']

        devices: List[Tuple[str, str]] = []
        for prefix, zone in INTERFACE_ZONES:
            device = settings.get(f'{prefix}_DEV')
            if device:
                devices.append((re.escape(device), colors[zone]))
        devices.extend((pattern, colors[zone]) for pattern, zone in TUNNEL_DEVICE_ZONES)

        routes = self.sources.routes()
        for pattern, color in devices:
            for network in self.sources.routed_networks(routes, pattern):
                networks[network] = color

        for network in self.sources.wireguard_networks():
            networks[network] = colors['WireGuard']
        for network in self.sources.openvpn_networks():
            networks[network] = colors['OpenVPN']
        for network in self.sources.ipsec_networks():
            networks[network] = colors['VPN']
        for network in self.sources.openvpn_n2n_networks():
            networks[network] = colors['OpenVPN']

        return networks

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def classify(self, ip) -> ZoneInfo:
        """Return (zone name, zone colour) for an address"""
        address = parse_ipv4(ip)
        if address is None:
            return '', self.zone_colors['INTERNET']

        # A rebuild swaps both; a lookup racing it only ever fills the old cache
        with self.lock:
            table, cache = self._lookup_table, self._cache

        cached = cache.get(ip)
        if cached is not None:
            return cached

        result = self._resolve(address, table)
        with self.lock:
            cache[ip] = result
        return result

    def _resolve(self, address: ipaddress.IPv4Address, table) -> ZoneInfo:
        for network, color in table:
            if address in network:
                return self.zone_for_color(color), color
        return 'INTERNET', self.zone_colors['INTERNET']

    def zone_for_color(self, color: str) -> str:
        """Reverse lookup of a colour; first zone in declared order wins"""
        for name in ZONE_NAMES:
            if self.zone_colors[name] == color:
                return name
        return ''

    def bindings(self) -> List[ZoneBinding]:
        return [ZoneBinding(network=cidr, color=color)
                for cidr, color in self._networks.items()]

    def zones(self) -> Dict[str, str]:
        """Zone legend: zone name -> colour"""
        return dict(self.zone_colors)

    def cache_size(self) -> int:
        return len(self._cache)

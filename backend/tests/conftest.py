"""
pytest configuration and fixtures for realtime backend tests
"""

import pytest
import sys
import os
from datetime import datetime
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config import TestingConfig
from zones.classifier import DEFAULT_ZONE_COLORS, ZoneClassifier
from zones.network_sources import NetworkSources

# Fixed "now" used by the log tests: 15 March 2025, noon
REFERENCE = datetime(2025, 3, 15, 12, 0, 0)

ROUTES = [
    "default via 203.0.113.1 dev red0 proto static",
    "192.168.1.0/24 dev green0 proto kernel scope link src 192.168.1.1",
    "192.168.50.0/24 via 192.168.1.254 dev green0",
    "10.90.0.0/24 dev gre1 scope link",
    "10.91.0.0/24 dev tun0 proto kernel scope link src 10.91.0.1",
]


class FakeGeo:
    """Country lookups from a fixed table"""

    def __init__(self, countries=None):
        self.countries = countries or {}

    def country_code(self, ip):
        return self.countries.get(ip, '')

    def flag_icon(self, country_code):
        return f"/images/flags/{(country_code or 'unknown').lower()}.png"


def log_line(src='1.2.3.4', dst='192.168.1.10', dpt='22', spt='40000', day=15, month='Mar',
             time='10:00:00', action='DROP_INPUT', in_if='red0', out_if='', proto='TCP'):
    """A kernel packet log line as written to /var/log/messages"""
    return (f"{month} {day:>2} {time} ipfire kernel: {action} IN={in_if} OUT={out_if} "
            f"MAC=00:11:22:33:44:55 SRC={src} DST={dst} LEN=60 TOS=0x00 PREC=0x00 TTL=52 "
            f"ID=1234 DF PROTO={proto} SPT={spt} DPT={dpt} WINDOW=64240 RES=0x00 SYN URGP=0")


def write_log(path, lines, mtime=REFERENCE, mode='w'):
    """Write lines to a log file and pin its mtime"""
    with open(path, mode) as f:
        for line in lines:
            f.write(line + '\n')
    ts = mtime.timestamp()
    os.utime(path, (ts, ts))
    return path


@pytest.fixture(scope='session')
def test_config():
    """Provide test configuration"""
    return TestingConfig


@pytest.fixture
def fake_geo():
    return FakeGeo({
        '1.2.3.4': 'US',
        '5.6.7.8': 'DE',
        '8.8.8.8': 'US',
    })


@pytest.fixture
def classifier():
    """Classifier with a small, explicit set of bindings"""
    colors = DEFAULT_ZONE_COLORS
    zone_classifier = ZoneClassifier(build=False)
    zone_classifier.load_bindings({
        '127.0.0.0/8': colors['IPFire'],
        '224.0.0.0/3': colors['Multicast'],
        '192.168.1.1/32': colors['IPFire'],
        '192.168.1.0/24': colors['LAN'],
        '172.16.0.0/24': colors['DMZ'],
        '10.8.0.0/24': colors['OpenVPN'],
    })
    return zone_classifier


@pytest.fixture
def settings_tree(tmp_path):
    """A firewall settings directory with every configuration source populated"""
    root = tmp_path / 'ipfire'
    files = {
        'ethernet/settings': (
            "GREEN_ADDRESS=192.168.1.1\n"
            "GREEN_NETADDRESS=192.168.1.0\n"
            "GREEN_NETMASK=255.255.255.0\n"
            "GREEN_DEV=green0\n"
            "ORANGE_ADDRESS=172.16.0.1\n"
            "ORANGE_NETADDRESS=172.16.0.0\n"
            "ORANGE_NETMASK=255.255.255.0\n"
            "ORANGE_DEV=orange0\n"
        ),
        'ethernet/aliases': "203.0.113.11,on,alias1\n203.0.113.12,off,alias2\n",
        'red/local-ipaddress': "203.0.113.10\n",
        'wireguard/settings': "CLIENT_POOL=10.50.0.0/24\n",
        'wireguard/peers': "1,on,peer1,pubkey,psk,endpoint,51820,25,x,10.60.0.0/24|10.61.0.0/24\n",
        'ovpn/settings': "DOVPN_SUBNET=10.8.0.0/255.255.255.0\n",
        'ovpn/ccd.conf': "1,clients,x,10.9.0.0/24\n",
        'ovpn/ovpnconfig': "1,on,n2n,x,net,x,x,x,x,x,x,x,10.80.0.0/24\n",
        'vpn/config': "1,on,site,x,x,x,x,x,x,x,x,x,10.70.0.0/24|10.71.0.0/24\n",
    }
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


@pytest.fixture
def network_sources(settings_tree, monkeypatch):
    """Sources over the settings tree, with a canned routing table"""
    sources = NetworkSources(str(settings_tree))
    monkeypatch.setattr(sources, 'routes', lambda: list(ROUTES))
    return sources


@pytest.fixture
def firewall_log(tmp_path):
    """A day of firewall log lines: 40 from 1.2.3.4, 60 spread over others"""
    lines = [log_line(src='1.2.3.4', dpt='22', time=f"10:00:{i:02d}") for i in range(40)]
    for i in range(60):
        lines.append(log_line(src=f"5.6.7.{i % 20}", dpt='443', time=f"11:{i:02d}:00"))
    return write_log(tmp_path / 'messages', lines)


CONNTRACK_TCP = ("ipv4     2 tcp      6 431999 ESTABLISHED src=192.168.1.50 dst=8.8.8.8 sport=40000 "
                 "dport=53 packets=3 bytes=180 src=8.8.8.8 dst=203.0.113.10 sport=53 dport=40000 "
                 "packets=3 bytes=3000 [ASSURED] mark=0 zone=0 use=2")
CONNTRACK_UDP = ("ipv4     2 udp      17 29 src=192.168.1.60 dst=1.1.1.1 sport=5353 dport=53 "
                 "packets=1 bytes=70 src=1.1.1.1 dst=203.0.113.10 sport=53 dport=5353 packets=1 "
                 "bytes=120 mark=0 use=2")
CONNTRACK_ICMP = ("ipv4     2 icmp     1 25 src=192.168.1.70 dst=9.9.9.9 type=8 code=0 id=1234 "
                  "packets=1 bytes=84 src=9.9.9.9 dst=203.0.113.10 type=0 code=0 id=1234 "
                  "packets=1 bytes=84 mark=0 use=2")
CONNTRACK_UNREPLIED = ("ipv4     2 tcp      6 100 SYN_SENT src=192.168.1.80 dst=5.5.5.5 sport=1025 "
                       "dport=443 packets=1 bytes=60 [UNREPLIED] src=5.5.5.5 dst=203.0.113.10 "
                       "sport=443 dport=1025 packets=0 bytes=0 mark=0 use=1")
CONNTRACK_ONE_WAY = ("ipv4     2 tcp      6 50 ESTABLISHED src=1.2.3.4 dst=5.6.7.8 sport=1 dport=2 "
                     "packets=1 bytes=1")
CONNTRACK_IPV6 = ("ipv6     10 tcp      6 300 ESTABLISHED src=fe80::1 dst=fe80::2 sport=1 dport=2 "
                  "packets=1 bytes=1 src=fe80::2 dst=fe80::1 sport=2 dport=1 packets=1 bytes=1 use=1")


@pytest.fixture
def conntrack_lines():
    return [CONNTRACK_UDP, CONNTRACK_ICMP, CONNTRACK_ONE_WAY, CONNTRACK_TCP,
            CONNTRACK_IPV6, CONNTRACK_UNREPLIED, '']

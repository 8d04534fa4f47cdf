#!/usr/bin/env python3
"""
Conntrack Table Line Parser

Tokenizes one line of the connection-tracking dump:

    ipv4 2 tcp 6 431999 ESTABLISHED src=... dst=... sport=... dport=... packets=.. bytes=..
        src=... dst=... sport=... dport=... packets=.. bytes=.. [ASSURED] mark=0 use=2

The first src= starts the forward (original) direction, the second the reply.
"""

import re
from typing import Dict, List, Optional
from dataclasses import dataclass, field

TTL_RE = re.compile(r'^\s*\S+\s+\d+\s+\S+\s+\d+\s+(\d+)\s')

STATELESS_PROTOCOLS = ('udp', 'icmp')

# Fields each direction must carry
ICMP_FIELDS = ('src', 'dst', 'type', 'code', 'bytes')
PORT_FIELDS = ('src', 'dst', 'sport', 'dport', 'bytes')


@dataclass
class ConntrackEntry:
    family: str
    protocol: str
    ttl: int
    state: str
    forward: Dict[str, str] = field(default_factory=dict)
    reply: Dict[str, str] = field(default_factory=dict)
    flags: List[str] = field(default_factory=list)

    @property
    def is_icmp(self) -> bool:
        return self.protocol == 'icmp'

    @property
    def assured(self) -> str:
        return 'ASSURED' if 'ASSURED' in self.flags else ''


def ttl_of(line: str) -> int:
    """TTL of a raw dump line, 0 if it has none"""
    match = TTL_RE.match(line)
    return int(match.group(1)) if match else 0


def _has_fields(group: Dict[str, str], required) -> bool:
    return all(group.get(name) for name in required)


def parse_conntrack_line(line: str) -> Optional[ConntrackEntry]:
    """Parse one IPv4 conntrack line; None if it cannot form a bidirectional record"""
    tokens = line.split()
    if len(tokens) < 6:
        return None

    family, family_number, protocol, protocol_number, ttl = tokens[:5]
    if family != 'ipv4' or not (family_number.isdigit() and protocol_number.isdigit() and ttl.isdigit()):
        return None
    if not re.match(r'^\w+$', protocol):
        return None

    rest = tokens[5:]
    state = ''
    if rest and '=' not in rest[0] and not rest[0].startswith('['):
        state = rest[0]
        rest = rest[1:]

    groups: List[Dict[str, str]] = []
    flags: List[str] = []
    for token in rest:
        if token.startswith('[') and token.endswith(']'):
            flags.append(token[1:-1])
            continue
        if '=' not in token:
            continue
        key, value = token.split('=', 1)
        if key == 'src':
            groups.append({})
        if groups:
            groups[-1].setdefault(key, value)

    if len(groups) < 2:
        return None

    protocol = protocol.lower()
    required = ICMP_FIELDS if protocol == 'icmp' else PORT_FIELDS
    forward, reply = groups[0], groups[1]
    if not (_has_fields(forward, required) and _has_fields(reply, required)):
        return None

    if protocol in STATELESS_PROTOCOLS:
        state = 'NONE'
    elif not state:
        state = 'UNKNOWN'

    return ConntrackEntry(
        family=family,
        protocol=protocol,
        ttl=int(ttl),
        state=state,
        forward=forward,
        reply=reply,
        flags=flags,
    )

#!/usr/bin/env python3
"""
Firewall Log Line Parser

Splits a syslog line written by the kernel packet logger into a header
(timestamp, host) and KEY=VALUE fields, e.g.

    Oct 17 12:00:01 fw kernel: DROP_INPUT IN=red0 OUT= SRC=1.2.3.4 DST=5.6.7.8 ... PROTO=TCP SPT=4000 DPT=22
"""

import re
from datetime import datetime
from typing import Dict, Optional
from dataclasses import dataclass, field

MONTHS = ('Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
          'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec')
MONTH_NUMBERS = {name: index + 1 for index, name in enumerate(MONTHS)}

HEADER_RE = re.compile(
    r'^(?P<stamp>(?P<month>[A-Z][a-z]{2})\s+(?P<day>\d{1,2})\s+(?P<time>\d\d:\d\d:\d\d))'
    r'\s+(?P<host>\S+)\s+(?:\S+\s+)*?kernel:\s*(?P<body>.*)$'
)
WORD_RE = re.compile(r'^\w+$')
ADDRESS_RE = re.compile(r'^[\d.]+$')
PORT_RE = re.compile(r'^\d+$')


@dataclass
class LogEntry:
    """Header and fields of one kernel firewall log line"""
    stamp: str
    month: int  # 1-12
    day: int
    time: str
    hostname: str
    action: str = ''
    fields: Dict[str, str] = field(default_factory=dict)

    def _value(self, key: str, pattern: re.Pattern) -> Optional[str]:
        value = self.fields.get(key)
        if value and pattern.match(value):
            return value
        return None

    @property
    def src_ip(self) -> Optional[str]:
        return self._value('SRC', ADDRESS_RE)

    @property
    def dst_ip(self) -> Optional[str]:
        return self._value('DST', ADDRESS_RE)

    @property
    def src_port(self) -> Optional[str]:
        return self._value('SPT', PORT_RE)

    @property
    def dst_port(self) -> Optional[str]:
        return self._value('DPT', PORT_RE)

    @property
    def in_interface(self) -> str:
        return self.fields.get('IN', '')

    @property
    def out_interface(self) -> str:
        return self.fields.get('OUT', '')

    @property
    def protocol(self) -> Optional[str]:
        return self._value('PROTO', WORD_RE)

    def is_packet_record(self) -> bool:
        """True when the line carries everything a raw log row needs"""
        return bool(
            self.action
            and WORD_RE.match(self.in_interface)
            and 'OUT' in self.fields
            and (self.out_interface == '' or WORD_RE.match(self.out_interface))
            and self.src_ip
            and self.dst_ip
            and self.protocol
        )

    def matches_date(self, month: int, day: int) -> bool:
        """month is 1-based here"""
        return self.month == month and self.day == day

    def infer_datetime(self, reference: datetime) -> Optional[datetime]:
        """
        Syslog lines carry no year. Assume the line is not newer than the
        reference time: a month/day after the reference belongs to the
        previous year.
        """
        year = reference.year
        if (self.month, self.day) > (reference.month, reference.day):
            year -= 1
        try:
            return datetime.strptime(
                f"{year} {self.month} {self.day} {self.time}", "%Y %m %d %H:%M:%S"
            )
        except ValueError:
            return None


def parse_log_line(line: str) -> Optional[LogEntry]:
    """Parse a kernel log line; None if the line is not one"""
    match = HEADER_RE.match(line.rstrip('\r\n'))
    if not match:
        return None

    month = MONTH_NUMBERS.get(match.group('month'))
    if month is None:
        return None

    entry = LogEntry(
        stamp=match.group('stamp'),
        month=month,
        day=int(match.group('day')),
        time=match.group('time'),
        hostname=match.group('host'),
    )

    tokens = match.group('body').split()
    for index, token in enumerate(tokens):
        if '=' not in token:
            continue
        key, value = token.split('=', 1)
        if not key:
            continue
        if key == 'IN' and 'IN' not in entry.fields and index > 0 and WORD_RE.match(tokens[index - 1]):
            entry.action = tokens[index - 1]
        entry.fields.setdefault(key, value)

    return entry


def month_day_text(month: int, day: int) -> str:
    """Syslog style 'Mon DD' text for a 1-based month"""
    return f"{MONTHS[month - 1]} {day:>2}"

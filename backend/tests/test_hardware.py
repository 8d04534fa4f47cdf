"""
Tests for host resource collection
"""

import socket
from types import SimpleNamespace

import psutil
import pytest

from collectors import HardwareCollector
from formatting import format_bytes, format_time, format_uptime

MB = 1024 * 1024


class Clock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now


def counters(rx, tx):
    return SimpleNamespace(bytes_recv=rx, bytes_sent=tx, packets_recv=10, packets_sent=20)


@pytest.fixture
def fake_nics(monkeypatch):
    state = {'red0': counters(0, 0), 'lo': counters(0, 0)}
    monkeypatch.setattr(psutil, 'net_io_counters', lambda pernic=False: dict(state))
    monkeypatch.setattr(psutil, 'net_if_addrs', lambda: {
        'red0': [SimpleNamespace(family=socket.AF_INET, address='203.0.113.10')],
    })
    return state


class TestNetInfo:

    def test_first_poll_has_zero_rate(self, fake_nics):
        nics = HardwareCollector(clock=Clock()).net_info()
        assert [n['if'] for n in nics] == ['red0']
        assert nics[0]['ip'] == '203.0.113.10'
        assert nics[0]['rx_rate'] == 0

    def test_rate_is_delta_since_previous_poll(self, fake_nics):
        clock = Clock()
        collector = HardwareCollector(clock=clock)
        collector.net_info()

        fake_nics['red0'] = counters(10 * MB, 5 * MB)
        clock.now += 5
        red = collector.net_info()[0]
        assert red['rx_rate'] == 2.0
        assert red['tx_rate'] == 1.0
        assert red['rx_mb'] == 10.0


class TestFetch:

    def test_rows(self, fake_nics):
        result = HardwareCollector(clock=Clock()).fetch()
        assert result.ok
        rows = result.value['data']
        assert [r['resource'] for r in rows] == ['CPU', 'Memory', 'Disk', 'Network']
        assert rows[3]['value'] == '203.0.113.10'
        assert result.value['interfaces'] == ['red0']
        assert result.value['actions'] == []
        assert set(result.value['system']) == {'kernel', 'arch', 'hostname', 'date'}

    def test_top_processes(self):
        top = HardwareCollector.top_processes('mem', count=3)
        assert len(top) <= 3
        assert all(p['mem'].endswith(' MB') for p in top)


class TestFormatting:

    @pytest.mark.parametrize('value,expected', [
        (0, '0 B'),
        (1023, '1023 B'),
        (1024, '1 KiB'),
        (5 * MB, '5 MiB'),
        ('junk', '0 B'),
    ])
    def test_format_bytes(self, value, expected):
        assert format_bytes(value) == expected

    def test_format_time(self):
        assert format_time(3725) == '01:02:05'
        assert format_time(-5) == '00:00:00'
        assert format_time(None) == '00:00:00'

    def test_format_uptime(self):
        assert format_uptime(90061) == '1d 01h 01m'

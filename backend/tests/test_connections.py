"""
Tests for the connection table collector
"""

import subprocess

import pytest

from collectors import ConnectionCollector
from collectors import connections as connections_module
from models import ErrorKind, FilterRequest
from zones.classifier import DEFAULT_ZONE_COLORS

from conftest import CONNTRACK_TCP


@pytest.fixture
def collector(classifier, fake_geo):
    return ConnectionCollector(classifier, fake_geo, command='getconntracktable', timeout=2)


def search(**kwargs):
    return FilterRequest(search_enabled=True, **kwargs)


class TestParse:

    def test_tcp_connection(self, collector):
        record = collector.parse([CONNTRACK_TCP])[0]
        assert record.protocol == 'tcp'
        assert (record.src_ip, record.src_port) == ('192.168.1.50', '40000')
        assert (record.dst_ip, record.dst_port) == ('8.8.8.8', '53')
        assert (record.src_zone, record.dst_zone) == ('LAN', 'INTERNET')
        assert record.src_zone_color == DEFAULT_ZONE_COLORS['LAN']
        assert record.dst_zone_color == DEFAULT_ZONE_COLORS['INTERNET']
        assert (record.bytes_out, record.bytes_in) == (180, 3000)
        assert record.state == 'ESTABLISHED'
        assert record.assured == 'ASSURED'
        assert record.dst_country == 'US'
        assert record.dst_flag_icon == '/images/flags/us.png'
        assert record.src_flag_icon == '/images/flags/unknown.png'

    def test_to_dict(self, collector):
        row = collector.parse([CONNTRACK_TCP])[0].to_dict()
        assert row['bytes_in'] == '2 KiB'
        assert row['bytes_in_raw'] == 3000
        assert row['bytes_out'] == '180 B'
        assert row['ttl'] == '119:59:59'
        assert row['ttl_raw'] == 431999
        assert row['src_ip_colour'] == DEFAULT_ZONE_COLORS['LAN']
        assert row['dst_port_colour'] == DEFAULT_ZONE_COLORS['INTERNET']

    def test_sorted_by_ttl_and_malformed_dropped(self, collector, conntrack_lines):
        records = collector.parse(conntrack_lines)
        assert [(r.protocol, r.ttl_seconds) for r in records] == [
            ('tcp', 431999), ('tcp', 100), ('udp', 29), ('icmp', 25)]
        assert collector.last_stats.skipped == 2
        assert collector.last_stats.emitted == 4

    def test_icmp_ports_are_type_and_code(self, collector, conntrack_lines):
        icmp = [r for r in collector.parse(conntrack_lines) if r.protocol == 'icmp'][0]
        assert (icmp.src_port, icmp.dst_port) == ('8/0', '0/0')
        assert icmp.state == 'NONE'

    def test_empty_table(self, collector):
        assert collector.parse([]) == []

    def test_filters_ignored_without_search(self, collector, conntrack_lines):
        request = FilterRequest(search_enabled=False, protocol='icmp')
        assert len(collector.parse(conntrack_lines, request)) == 4

    @pytest.mark.parametrize('request_kwargs,protocols', [
        ({'zones': ['LAN']}, ['tcp', 'tcp', 'udp', 'icmp']),
        ({'zones': ['DMZ']}, []),
        ({'ip': '1.1.1'}, ['udp']),
        ({'port': '53'}, ['tcp', 'udp']),
        ({'port': '5'}, []),
        ({'protocol': 'ic'}, ['icmp']),
        ({'protocol': 'TCP'}, ['tcp', 'tcp']),
        ({'zones': ['INTERNET'], 'port': '443'}, ['tcp']),
    ])
    def test_search_filters(self, collector, conntrack_lines, request_kwargs, protocols):
        records = collector.parse(conntrack_lines, search(**request_kwargs))
        assert [r.protocol for r in records] == protocols


class TestSnapshot:

    def test_runs_command(self, collector, monkeypatch):
        calls = []

        def run(args, **kwargs):
            calls.append((args, kwargs))
            return subprocess.CompletedProcess(args, 0, stdout=CONNTRACK_TCP + '\n', stderr='')

        monkeypatch.setattr(connections_module.subprocess, 'run', run)
        result = collector.fetch(FilterRequest())
        assert result.ok
        assert len(result.value) == 1
        assert calls[0][0] == ['getconntracktable']
        assert calls[0][1]['timeout'] == 2

    def test_empty_output(self, collector, monkeypatch):
        monkeypatch.setattr(connections_module.subprocess, 'run',
                            lambda args, **kw: subprocess.CompletedProcess(args, 0, stdout='', stderr=''))
        result = collector.fetch()
        assert result.ok
        assert result.value == []

    def test_missing_command(self, collector, monkeypatch):
        def run(args, **kwargs):
            raise FileNotFoundError(2, 'No such file or directory')

        monkeypatch.setattr(connections_module.subprocess, 'run', run)
        result = collector.fetch()
        assert result.kind == ErrorKind.RESOURCE_UNAVAILABLE

    def test_timeout(self, collector, monkeypatch):
        def run(args, **kwargs):
            raise subprocess.TimeoutExpired(args, kwargs['timeout'])

        monkeypatch.setattr(connections_module.subprocess, 'run', run)
        result = collector.fetch()
        assert result.kind == ErrorKind.RESOURCE_UNAVAILABLE
        assert 'timed out' in result.message

    def test_nonzero_exit(self, collector, monkeypatch):
        monkeypatch.setattr(connections_module.subprocess, 'run',
                            lambda args, **kw: subprocess.CompletedProcess(args, 1, stdout='', stderr='denied'))
        result = collector.fetch()
        assert result.kind == ErrorKind.RESOURCE_UNAVAILABLE
        assert 'denied' in result.message

"""
Tests for request normalisation, results and geo decoration
"""

from datetime import datetime

from geo import GeoLocator
from models import Err, ErrorKind, FilterRequest, LogFileCursor, Ok, ParseStats


class TestFilterRequest:

    def test_defaults_to_today(self):
        now = datetime(2025, 3, 15, 9, 30)
        request = FilterRequest()
        request.day = request.month = request.year = None
        request.normalize(now=now)
        assert (request.year, request.month, request.day) == (2025, 2, 15)
        assert request.limit == 10
        assert request.group == 'ip'

    def test_invalid_values_are_replaced(self):
        now = datetime(2025, 3, 15)
        request = FilterRequest()
        request.day, request.month, request.year = 40, 12, 'abc'
        request.limit, request.refresh = -3, 'soon'
        request.normalize(now=now, default_limit=25)
        assert (request.year, request.month, request.day) == (2025, 2, 15)
        assert request.limit == 25
        assert request.refresh == 0

    def test_january_is_month_zero(self):
        request = FilterRequest(day=1, month=0, year=2024)
        assert request.month == 0

    def test_group_is_lowercased(self):
        assert FilterRequest(group=' Country ').group == 'country'

    def test_from_params_aliases(self):
        request = FilterRequest.from_params({
            'is_search': 'true',
            'search_ip': '10.0.0.1',
            'search_port': '22',
            'search_protocol': 'tcp',
            'search_interface': 'red0',
            'search_action': 'DROP_INPUT',
            'zones': 'LAN, DMZ,',
            'limit': '5',
            'day': '3', 'month': '1', 'year': '2025',
        })
        assert request.search_enabled is True
        assert (request.ip, request.port, request.protocol) == ('10.0.0.1', '22', 'tcp')
        assert (request.interface, request.action) == ('red0', 'DROP_INPUT')
        assert request.zones == ['LAN', 'DMZ']
        assert (request.limit, request.day, request.month, request.year) == (5, 3, 1, 2025)

    def test_non_text_values(self):
        request = FilterRequest.from_params({
            'ip': 192, 'port': 22, 'protocol': None, 'interface': ['red0'],
            'action': {'a': 1}, 'group': 5, 'zones': 3,
        })
        assert (request.ip, request.port) == ('192', '22')
        assert (request.protocol, request.interface, request.action) == ('', '', '')
        assert request.group == '5'
        assert request.zones == []

    def test_infinite_numbers_fall_back(self):
        request = FilterRequest()
        request.limit, request.day = float('inf'), float('nan')
        request.normalize(now=datetime(2025, 3, 15))
        assert (request.limit, request.day) == (10, 15)

    def test_zone_list_entries_are_cleaned(self):
        request = FilterRequest(zones=[' LAN ', None, 7, ''])
        assert request.zones == ['LAN', '7']

    def test_from_params_empty(self):
        request = FilterRequest.from_params({}, default_limit=7)
        assert request.limit == 7
        assert request.search_enabled is False
        assert request.zones == []


class TestResults:

    def test_ok(self):
        result = Ok([1, 2])
        assert result.ok
        assert result.value == [1, 2]

    def test_err(self):
        result = Err(ErrorKind.NO_DATA, 'nothing')
        assert not result.ok
        assert result.to_dict() == {'error': 'nothing', 'kind': 'no_data'}

    def test_cursor_to_dict(self):
        cursor = LogFileCursor('/var/log/messages', byte_offset=10, inode=5)
        assert cursor.to_dict() == {'file_path': '/var/log/messages', 'byte_offset': 10, 'inode': 5}

    def test_parse_stats_reset(self):
        stats = ParseStats(lines=3, matched=2, skipped=1, emitted=2)
        stats.reset()
        assert stats == ParseStats()


class TestGeoLocator:

    def test_missing_database_disables_lookups(self, tmp_path):
        geo = GeoLocator(str(tmp_path / 'missing.mmdb'))
        assert geo.country_code('8.8.8.8') == ''
        assert geo.country_code('8.8.8.8') == ''
        geo.close()

    def test_no_database_configured(self):
        assert GeoLocator('').country_code('8.8.8.8') == ''

    def test_empty_address(self):
        assert GeoLocator(None).country_code(None) == ''

    def test_flag_icon(self):
        geo = GeoLocator(None, flag_base='/images/flags/')
        assert geo.flag_icon('US') == '/images/flags/us.png'
        assert geo.flag_icon('') == '/images/flags/unknown.png'

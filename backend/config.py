"""
Settings for the realtime firewall backend, read from the environment
"""

import os
from typing import Dict, Optional
from pathlib import Path


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 't')


class Config:
    """Defaults shared by every environment"""

    # Application
    ENV = os.getenv('FLASK_ENV', 'development')
    DEBUG = _env_bool('FLASK_DEBUG', 'False')

    # Backend
    BACKEND_HOST = os.getenv('BACKEND_HOST', '127.0.0.1')
    BACKEND_PORT = int(os.getenv('BACKEND_PORT', '5000'))

    # Data sources
    FIREWALL_LOG_PATH = os.getenv('FIREWALL_LOG_PATH', '/var/log/messages')
    SETTINGS_ROOT = os.getenv('SETTINGS_ROOT', '/var/ipfire')
    CONNTRACK_COMMAND = os.getenv('CONNTRACK_COMMAND', '/usr/local/bin/getconntracktable')
    ROUTE_COMMAND = os.getenv('ROUTE_COMMAND', 'ip route show')
    COMMAND_TIMEOUT = int(os.getenv('COMMAND_TIMEOUT', '10'))

    # Geo lookup
    GEOIP_DATABASE = os.getenv('GEOIP_DATABASE', '/var/lib/GeoIP/GeoLite2-Country.mmdb')
    FLAG_ICON_BASE = os.getenv('FLAG_ICON_BASE', '/images/flags')

    # Result sizes
    DEFAULT_GROUP_LIMIT = int(os.getenv('DEFAULT_GROUP_LIMIT', '10'))
    RAW_LOG_LIMIT = int(os.getenv('RAW_LOG_LIMIT', '50'))

    # Zone colours (web UI palette)
    ZONE_COLORS: Dict[str, str] = {
        'LAN': os.getenv('COLOR_GREEN', '#339933'),
        'INTERNET': os.getenv('COLOR_RED', '#993333'),
        'DMZ': os.getenv('COLOR_ORANGE', '#FF9933'),
        'Wireless': os.getenv('COLOR_BLUE', '#333399'),
        'IPFire': os.getenv('COLOR_FW', '#000000'),
        'VPN': os.getenv('COLOR_VPN', '#990099'),
        'WireGuard': os.getenv('COLOR_WG', '#FF007F'),
        'OpenVPN': os.getenv('COLOR_OVPN', '#339999'),
        'Multicast': '#A0A0A0',
    }

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_FILE = os.getenv('LOG_FILE', './logs/realtime-backend.log')

    # Security
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')

    @classmethod
    def is_testing(cls) -> bool:
        return cls.ENV in ('testing', 'test')

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENV == 'production'

    @classmethod
    def get_log_file_path(cls) -> Path:
        """Backend log file, relative paths resolved against the working directory"""
        path = Path(cls.LOG_FILE)
        if not path.is_absolute():
            path = Path.cwd() / path
        path.parent.mkdir(parents=True, exist_ok=True)
        return path

    @classmethod
    def get_settings_path(cls, *parts: str) -> Path:
        """Resolve a path below the firewall settings root"""
        return Path(cls.SETTINGS_ROOT).joinpath(*parts)

    @classmethod
    def validate(cls) -> bool:
        """Check limits and the zone palette; print each problem found"""
        problems = []

        if not (1 <= cls.BACKEND_PORT <= 65535):
            problems.append(f"Invalid BACKEND_PORT: {cls.BACKEND_PORT}")

        for name in ('DEFAULT_GROUP_LIMIT', 'RAW_LOG_LIMIT', 'COMMAND_TIMEOUT'):
            if getattr(cls, name) < 1:
                problems.append(f"Invalid {name}: {getattr(cls, name)}")

        # Zone names are recovered from colours, so colours must be distinct
        colors = [c.lower() for c in cls.ZONE_COLORS.values()]
        if len(set(colors)) != len(colors):
            problems.append("Zone colours are not unique")

        for problem in problems:
            print(f"[CONFIG ERROR] {problem}")
        return not problems

    @classmethod
    def print_config(cls):
        print("=" * 50)
        print("Realtime Firewall Backend Configuration")
        print("=" * 50)
        for label, value in (
            ('Environment', cls.ENV),
            ('Debug Mode', cls.DEBUG),
            ('Listen', f"{cls.BACKEND_HOST}:{cls.BACKEND_PORT}"),
            ('Firewall Log', cls.FIREWALL_LOG_PATH),
            ('Settings Root', cls.SETTINGS_ROOT),
            ('Conntrack', cls.CONNTRACK_COMMAND),
            ('GeoIP Database', cls.GEOIP_DATABASE or '(disabled)'),
            ('Log Level', cls.LOG_LEVEL),
            ('Log File', cls.get_log_file_path()),
        ):
            print(f"{label + ':':<17}{value}")
        print("=" * 50)


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    """Points every data source at a local tests-data tree"""
    ENV = 'testing'
    DEBUG = False
    FIREWALL_LOG_PATH = './tests-data/messages'
    SETTINGS_ROOT = './tests-data/ipfire'
    CONNTRACK_COMMAND = 'getconntracktable'
    GEOIP_DATABASE = ''
    COMMAND_TIMEOUT = 2


class StagingConfig(Config):
    ENV = 'production'
    DEBUG = False
    LOG_LEVEL = 'INFO'


config_by_name = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'staging': StagingConfig,
    'production': StagingConfig,
}


def get_config(env_name: Optional[str] = None) -> Config:
    """Config class for an environment name (FLASK_ENV by default)"""
    name = env_name or os.getenv('FLASK_ENV', 'development')
    return config_by_name.get(name, DevelopmentConfig)

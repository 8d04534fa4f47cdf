"""
Country lookup for IP addresses (local GeoIP2 country database)
"""

import logging
import os
import threading
from typing import Optional

import geoip2.database
import geoip2.errors

logger = logging.getLogger(__name__)

UNKNOWN_COUNTRY = 'unknown'


class GeoLocator:
    """Resolves IPv4 addresses to ISO country codes and flag icon paths"""

    def __init__(self, database_path: Optional[str] = None, flag_base: str = '/images/flags'):
        self.database_path = database_path
        self.flag_base = flag_base.rstrip('/')
        self._reader = None
        self._unavailable = False
        self.lock = threading.Lock()

    def _get_reader(self):
        if self._reader is not None or self._unavailable:
            return self._reader

        with self.lock:
            if self._reader is None and not self._unavailable:
                if not self.database_path or not os.path.exists(self.database_path):
                    logger.warning(f"GeoIP database not found: {self.database_path!r}, country lookups disabled")
                    self._unavailable = True
                else:
                    try:
                        self._reader = geoip2.database.Reader(self.database_path)
                    except (OSError, ValueError) as e:
                        logger.warning(f"GeoIP database could not be opened: {e}")
                        self._unavailable = True
        return self._reader

    def country_code(self, ip: Optional[str]) -> str:
        """ISO country code of an address, or '' when unknown"""
        if not ip:
            return ''
        reader = self._get_reader()
        if reader is None:
            return ''
        try:
            response = reader.country(ip)
        except (geoip2.errors.AddressNotFoundError, ValueError):
            return ''
        return response.country.iso_code or ''

    def flag_icon(self, country_code: Optional[str]) -> str:
        """Web path of the flag image for a country code"""
        code = (country_code or UNKNOWN_COUNTRY).lower()
        return f"{self.flag_base}/{code}.png"

    def close(self):
        with self.lock:
            if self._reader is not None:
                self._reader.close()
                self._reader = None

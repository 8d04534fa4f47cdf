"""Network zone classification"""

from .classifier import ZoneClassifier, ZONE_NAMES, DEFAULT_ZONE_COLORS
from .network_sources import NetworkSources
from .watcher import ConfigWatcher

__all__ = ['ZoneClassifier', 'NetworkSources', 'ConfigWatcher',
           'ZONE_NAMES', 'DEFAULT_ZONE_COLORS']

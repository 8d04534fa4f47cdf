"""
Topology watcher - rebuilds the zone classifier when network configuration changes
"""

import logging
import os
import threading
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

logger = logging.getLogger(__name__)

Signature = Dict[str, Optional[Tuple[int, int]]]


class ConfigWatcher:
    """Polls the mtimes of configuration files and triggers a classifier rebuild"""

    def __init__(self, classifier, paths: Optional[Iterable[Path]] = None):
        self.classifier = classifier
        if paths is None and classifier.sources is not None:
            paths = classifier.sources.watched_paths()
        self.paths = [Path(p) for p in (paths or [])]
        self.lock = threading.Lock()
        self._signature = self._snapshot()

    def _snapshot(self) -> Signature:
        signature: Signature = {}
        for path in self.paths:
            try:
                st = os.stat(path)
                signature[str(path)] = (st.st_mtime_ns, st.st_size)
            except OSError:
                signature[str(path)] = None
        return signature

    def check(self) -> bool:
        """Rebuild the classifier if any watched file changed; return True if rebuilt"""
        with self.lock:
            current = self._snapshot()
            if current == self._signature:
                return False
            changed = [p for p in current if current[p] != self._signature.get(p)]
            self._signature = current

        logger.info(f"Network configuration changed ({', '.join(changed)}), rebuilding zones")
        self.classifier.rebuild()
        return True

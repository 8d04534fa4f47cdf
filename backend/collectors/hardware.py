#!/usr/bin/env python3
"""
Hardware - CPU, memory, disk and network usage of the firewall host
"""

import logging
import platform
import socket
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, List

import psutil

from formatting import format_uptime
from models import Ok

logger = logging.getLogger(__name__)

MB = 1024 * 1024


def _cpu_model() -> str:
    try:
        with open('/proc/cpuinfo', 'r') as f:
            for line in f:
                if line.startswith('model name'):
                    return line.split(':', 1)[1].strip()
    except OSError:
        pass
    return platform.processor() or 'unknown'


class HardwareCollector:
    """Collects host resource usage; network rates are deltas since the previous poll"""

    def __init__(self, red_device: str = 'red0', clock: Callable[[], float] = time.time):
        self.red_device = red_device
        self.clock = clock
        self._net_cache: Dict[str, Dict[str, float]] = {}
        self.lock = threading.Lock()

    def cpu_info(self) -> Dict[str, Any]:
        load1, load5, load15 = psutil.getloadavg()
        try:
            freq = psutil.cpu_freq()
        except (NotImplementedError, OSError, RuntimeError):
            freq = None
        info = {
            'model': _cpu_model(),
            'cores': psutil.cpu_count(logical=False) or psutil.cpu_count() or 1,
            'threads': psutil.cpu_count() or 1,
            'mhz': round(freq.current, 1) if freq else None,
            'load1': round(load1, 2),
            'load5': round(load5, 2),
            'load15': round(load15, 2),
            'uptime': format_uptime(time.time() - psutil.boot_time()),
            'temp': None,
        }

        temps = self._cpu_temperatures()
        if temps:
            info['temp'] = round(sum(temps) / len(temps), 1)
        logger.debug(f"CPU info: {info}")
        return info

    @staticmethod
    def _cpu_temperatures() -> List[float]:
        if not hasattr(psutil, 'sensors_temperatures'):
            return []
        try:
            sensors = psutil.sensors_temperatures()
        except (OSError, RuntimeError) as e:
            logger.debug(f"No temperature sensors: {e}")
            return []

        core = [t.current for entries in sensors.values() for t in entries
                if t.label.startswith(('Core', 'Package id'))]
        if core:
            return core
        return [t.current for entries in sensors.values() for t in entries]

    def memory_info(self) -> Dict[str, int]:
        memory = psutil.virtual_memory()
        swap = psutil.swap_memory()
        return {
            'total': memory.total // MB,
            'available': memory.available // MB,
            'used': (memory.total - memory.available) // MB,
            'free': memory.free // MB,
            'buffers': getattr(memory, 'buffers', 0) // MB,
            'cached': getattr(memory, 'cached', 0) // MB,
            'swap_total': swap.total // MB,
            'swap_used': swap.used // MB,
            'swap_free': swap.free // MB,
        }

    def disk_info(self) -> List[Dict[str, Any]]:
        partitions = []
        for part in psutil.disk_partitions(all=False):
            if not part.device.startswith('/'):
                continue
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except OSError as e:
                logger.debug(f"Skipping {part.mountpoint}: {e}")
                continue
            partitions.append({
                'fs': part.device,
                'type': part.fstype,
                'size': usage.total // MB,
                'used': usage.used // MB,
                'avail': usage.free // MB,
                'usep': f"{usage.percent:.0f}%",
                'mount': part.mountpoint,
            })
        logger.debug(f"Disk info: {len(partitions)} partitions found")
        return partitions

    def net_info(self) -> List[Dict[str, Any]]:
        now = self.clock()
        addresses = {}
        for name, addrs in psutil.net_if_addrs().items():
            for addr in addrs:
                if addr.family == socket.AF_INET:
                    addresses[name] = addr.address
                    break

        nics = []
        new_cache = {}
        with self.lock:
            previous = self._net_cache
            for name, counters in psutil.net_io_counters(pernic=True).items():
                if name == 'lo':
                    continue
                prev = previous.get(name, {
                    'rx_bytes': counters.bytes_recv,
                    'tx_bytes': counters.bytes_sent,
                    'timestamp': now,
                })
                delta_t = now - prev['timestamp']
                if delta_t <= 0:
                    delta_t = 5
                rx_rate = (counters.bytes_recv - prev['rx_bytes']) / MB / delta_t
                tx_rate = (counters.bytes_sent - prev['tx_bytes']) / MB / delta_t
                nics.append({
                    'if': name,
                    'ip': addresses.get(name, ''),
                    'rx_mb': round(counters.bytes_recv / MB, 1),
                    'tx_mb': round(counters.bytes_sent / MB, 1),
                    'rx_rate': round(max(rx_rate, 0), 2),
                    'tx_rate': round(max(tx_rate, 0), 2),
                    'rx_packets': counters.packets_recv,
                    'tx_packets': counters.packets_sent,
                })
                new_cache[name] = {
                    'rx_bytes': counters.bytes_recv,
                    'tx_bytes': counters.bytes_sent,
                    'timestamp': now,
                }
            self._net_cache = new_cache
        return nics

    @staticmethod
    def sys_info() -> Dict[str, str]:
        return {
            'kernel': platform.release(),
            'arch': platform.machine(),
            'hostname': platform.node(),
            'date': datetime.now().strftime("%a %b %d %H:%M:%S %Y"),
        }

    @staticmethod
    def top_processes(sort_by: str = 'cpu', count: int = 10) -> List[Dict[str, Any]]:
        procs = []
        for proc in psutil.process_iter(['pid', 'name', 'cpu_percent', 'memory_info']):
            info = proc.info
            memory = info.get('memory_info')
            procs.append({
                'pid': info['pid'],
                'command': info.get('name') or '?',
                'cpu': info.get('cpu_percent') or 0.0,
                'mem': (memory.rss / MB) if memory else 0.0,
            })
        procs.sort(key=lambda p: p[sort_by], reverse=True)
        return [
            {'pid': p['pid'], 'command': p['command'],
             sort_by: f"{p['cpu']} %" if sort_by == 'cpu' else f"{p['mem']:.1f} MB"}
            for p in procs[:count]
        ]

    def fetch(self, request=None):
        """Resource rows for the hardware table"""
        cpu = self.cpu_info()
        mem = self.memory_info()
        disks = self.disk_info()
        nets = self.net_info()

        cpu_tip = (f"Model: {cpu['model']}\nCores: {cpu['cores']}\nThreads: {cpu['threads']}\n"
                   f"Freq: {cpu['mhz']} MHz\nLoad: {cpu['load1']} {cpu['load5']} {cpu['load15']}\n"
                   f"Uptime: {cpu['uptime']}")
        if cpu['temp'] is not None:
            cpu_tip += f"\nTemp: {cpu['temp']}°C"

        mem_tip = (f"Total: {mem['total']}MB\nUsed: {mem['used']}MB\nFree: {mem['free']}MB\n"
                   f"Buffers: {mem['buffers']}MB\nCached: {mem['cached']}MB\n"
                   f"Swap: {mem['swap_used']}MB/{mem['swap_total']}MB")

        main_fs = next((d for d in disks if d['mount'] == '/'), None)
        disk_tip = '\n'.join(f"{d['mount']}: {d['used']}/{d['size']}MB ({d['type']})" for d in disks)

        red = next((n for n in nets if n['if'] == self.red_device), None)
        net_tip = '\n'.join(f"{n['if']}: {n['ip']} (RX: {n['rx_rate']}MB/s, TX: {n['tx_rate']}MB/s)"
                            for n in nets)

        rows = [
            {
                'resource': 'CPU',
                'usage': f"{cpu['load1']:.2f}",
                'value': f"{cpu['temp']}°C" if cpu['temp'] is not None else "No temp data",
                'details': f"Uptime: {cpu['uptime']}",
                'tooltip': cpu_tip,
                'resource_colour': '#4CAF50',
            },
            {
                'resource': 'Memory',
                'usage': f"{mem['used'] / mem['total'] * 100:.1f}%" if mem['total'] else "-",
                'value': f"{mem['used']}MB/{mem['total']}MB",
                'details': f"Swap: {mem['swap_used']}/{mem['swap_total']}MB",
                'tooltip': mem_tip,
                'resource_colour': '#2196F3',
            },
            {
                'resource': 'Disk',
                'usage': main_fs['usep'] if main_fs else "-",
                'value': f"{main_fs['used']}/{main_fs['size']}MB on /" if main_fs else "-",
                'details': f"Main: {main_fs['fs']} ({main_fs['type']})" if main_fs else "-",
                'tooltip': disk_tip,
                'resource_colour': '#FF9800',
            },
            {
                'resource': 'Network',
                'usage': f"{red['rx_rate']:.2f}MB/s in / {red['tx_rate']:.2f}MB/s out" if red else "-",
                'value': red['ip'] if red and red['ip'] else "-",
                'details': f"Interfaces: {len(nets)}",
                'tooltip': net_tip,
                'resource_colour': '#F44336',
            },
        ]

        return Ok({
            'data': rows,
            'interfaces': [n['if'] for n in nets],
            'actions': [],
            'limit': 10,
            'system': self.sys_info(),
            'top_cpu': self.top_processes('cpu'),
            'top_mem': self.top_processes('mem'),
        })

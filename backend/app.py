#!/usr/bin/env python3

import logging
import platform
import socket
import sys
from datetime import datetime
from typing import Optional

from flask import Flask, request, jsonify
from flask_cors import CORS

from config import get_config
from models import FilterRequest, LogFileCursor
from realtime import DATA_TYPES, get_service, to_json

config = get_config()

app = Flask(__name__)

CORS(app, resources={r"/api/*": {
    "origins": config.CORS_ORIGINS,
    "methods": ["GET", "POST", "OPTIONS"],
    "allow_headers": ["Content-Type"]
}})

logger = logging.getLogger('realtime.api')


def setup_logging(cfg=config):
    """Log to stderr and to the backend's log file"""
    handlers = [logging.StreamHandler(sys.stderr)]
    try:
        handlers.append(logging.FileHandler(cfg.get_log_file_path()))
    except OSError as e:
        print(f"[!] File logging disabled: {e}")

    logging.basicConfig(
        level=getattr(logging, str(cfg.LOG_LEVEL).upper(), logging.INFO),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=handlers,
    )


def _request_params():
    params = request.args.to_dict()
    if request.is_json:
        body = request.get_json(silent=True)
        if isinstance(body, dict):
            params.update(body)
    if 'zones' in request.args:
        params['zones'] = request.args.getlist('zones')
    return params


def _filter_request() -> FilterRequest:
    return FilterRequest.from_params(_request_params(), default_limit=config.DEFAULT_GROUP_LIMIT)


def _cursor_from_params(params) -> Optional[LogFileCursor]:
    """The tail cursor is round-tripped by the client as last_pos/inode"""
    if params.get('last_pos') in (None, ''):
        return None
    try:
        offset = int(params['last_pos'])
    except (TypeError, ValueError):
        return None
    try:
        inode = int(params['inode']) if params.get('inode') not in (None, '') else None
    except (TypeError, ValueError):
        inode = None
    return LogFileCursor(file_path=config.FIREWALL_LOG_PATH, byte_offset=max(offset, 0), inode=inode)


def _respond(result):
    payload, status = to_json(result)
    return jsonify(payload), status


def _respond_raw(result):
    if not result.ok:
        return _respond(result)
    records, cursor = result.value
    return jsonify({
        'data': [r.to_dict() for r in records],
        'last_pos': cursor.byte_offset,
        'inode': cursor.inode,
    })


@app.before_request
def refresh_topology():
    if request.path.startswith('/api/') and request.path != '/api/health':
        get_service(config).refresh_topology()


@app.route('/api/health', methods=['GET'])
def health_check():
    return jsonify({
        'status': 'ok',
        'timestamp': datetime.now().isoformat(),
        'hostname': socket.gethostname(),
        'data_types': list(DATA_TYPES),
    })


@app.route('/api/zones', methods=['GET'])
def get_zones():
    service = get_service(config)
    return jsonify({
        'zones': service.classifier.zones(),
        'networks': len(service.classifier.bindings()),
    })


@app.route('/api/zones/rebuild', methods=['POST'])
def rebuild_zones():
    count = get_service(config).classifier.rebuild()
    return jsonify({'status': 'rebuilt', 'networks': count})


@app.route('/api/zones/lookup/<ip>', methods=['GET'])
def lookup_zone(ip):
    zone, color = get_service(config).classifier.classify(ip)
    return jsonify({'ip': ip, 'zone': zone, 'colour': color})


@app.route('/api/connections', methods=['GET', 'POST'])
def get_connections():
    return _respond(get_service(config).fetch_data('connections', _filter_request()))


@app.route('/api/firewalllogs', methods=['GET', 'POST'])
def get_firewall_logs():
    return _respond(get_service(config).fetch_data('firewalllogs', _filter_request()))


@app.route('/api/firewalllogs/raw', methods=['GET', 'POST'])
def get_firewall_logs_raw():
    params = _request_params()
    filters = FilterRequest.from_params(params, default_limit=config.DEFAULT_GROUP_LIMIT)
    result = get_service(config).fetch_data('firewalllogs_raw', filters, _cursor_from_params(params))
    return _respond_raw(result)


@app.route('/api/firewalllogs/filters', methods=['GET'])
def get_firewall_log_filters():
    return _respond(get_service(config).fetch_data('firewalllogs_filters', _filter_request()))


@app.route('/api/hardware', methods=['GET'])
def get_hardware():
    return _respond(get_service(config).fetch_data('hardware', _filter_request()))


@app.route('/api/realtime/<data_type>', methods=['GET', 'POST'])
def get_realtime_data(data_type):
    params = _request_params()
    filters = FilterRequest.from_params(params, default_limit=config.DEFAULT_GROUP_LIMIT)
    if data_type == 'firewalllogs_raw':
        return _respond_raw(get_service(config).fetch_data(data_type, filters, _cursor_from_params(params)))
    return _respond(get_service(config).fetch_data(data_type, filters))


if __name__ == '__main__':
    setup_logging()
    config.print_config()
    if not config.validate():
        sys.exit(1)

    print("=" * 70)
    print("REALTIME FIREWALL BACKEND")
    print("=" * 70)
    print(f"Kernel: {platform.release()}")
    print(f"Hostname: {socket.gethostname()}")
    print("=" * 70)
    print("\nAPI Endpoints:")
    print("  GET  /api/health")
    print("  GET  /api/zones")
    print("  POST /api/zones/rebuild")
    print("  GET  /api/connections")
    print("  GET  /api/firewalllogs")
    print("  GET  /api/firewalllogs/raw")
    print("  GET  /api/firewalllogs/filters")
    print("  GET  /api/hardware")
    print("  GET  /api/realtime/<data_type>")
    print("=" * 70)

    get_service(config)
    print(f"[*] Server running on http://{config.BACKEND_HOST}:{config.BACKEND_PORT}")
    app.run(host=config.BACKEND_HOST, port=config.BACKEND_PORT, debug=config.DEBUG, use_reloader=False)

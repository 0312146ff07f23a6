from flask import Blueprint, current_app, jsonify

from errors import ProductNotFound
from routes.products import get_store

scanner_bp = Blueprint('scanner', __name__, url_prefix='/api/scanner')

ACTIONS = ('open', 'start', 'stop', 'retry', 'close')


def get_surfaces():
    return current_app.extensions['capture_surfaces']


def _surface_state(surface):
    surfaces = get_surfaces()
    payload = surfaces.get(surface).snapshot()
    payload['lastScan'] = surfaces.last_scan(surface)
    return payload


@scanner_bp.route('/<surface>', methods=['GET'])
def surface_state(surface):
    return jsonify(_surface_state(surface))


@scanner_bp.route('/<surface>/<action>', methods=['POST'])
def surface_action(surface, action):
    if action not in ACTIONS:
        return jsonify({'success': False, 'message': f'Acción desconocida: {action}'}), 404
    controller = get_surfaces().get(surface)
    getattr(controller, action)()
    return jsonify(_surface_state(surface))


@scanner_bp.route('/<surface>/scan', methods=['GET'])
def last_scan(surface):
    """Última lectura y, si existe, el producto con ese código."""
    scan = get_surfaces().last_scan(surface)
    if scan is None:
        return jsonify({'success': False, 'message': 'Todavía no se ha escaneado ningún código'}), 404
    try:
        product = get_store().get_product_by_barcode(scan['barcode']).to_dict()
    except ProductNotFound:
        product = None
    return jsonify({'success': True, 'scan': scan, 'product': product})


@scanner_bp.route('/<surface>/scan', methods=['DELETE'])
def consume_scan(surface):
    scan = get_surfaces().consume_scan(surface)
    return jsonify({'success': True, 'scan': scan})

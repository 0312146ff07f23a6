import io

from flask import Blueprint, jsonify, request, send_file

from exports import XLSX_MIMETYPE, export_filename, products_to_excel, products_to_sql
from log import get_logger
from routes.products import filtered_products, get_store, read_filters

LOG = get_logger("routes.exports")

exports_bp = Blueprint('exports', __name__, url_prefix='/api/export')


def _export_products():
    """Colección completa (scope=all) o la visible con los filtros del listado."""
    scope = request.args.get('scope', 'all')
    if scope == 'visible':
        return filtered_products(read_filters(request.args))
    return get_store().list_products()


@exports_bp.route('/excel')
def export_excel():
    """Exportar productos a Excel"""
    products = _export_products()
    if not products:
        return jsonify({'success': False, 'message': 'Agrega productos para poder exportarlos'}), 400
    try:
        output = products_to_excel(products)
    except Exception:
        LOG.exception("Excel export failed")
        return jsonify({'success': False, 'message': 'No se pudo generar el archivo Excel'}), 500
    return send_file(
        output,
        as_attachment=True,
        download_name=export_filename('xlsx'),
        mimetype=XLSX_MIMETYPE
    )


@exports_bp.route('/sql')
def export_sql():
    products = _export_products()
    if not products:
        return jsonify({'success': False, 'message': 'Agrega productos para poder exportarlos'}), 400
    content = products_to_sql(products)
    return send_file(
        io.BytesIO(content.encode('utf-8')),
        as_attachment=True,
        download_name=export_filename('sql'),
        mimetype='application/sql'
    )

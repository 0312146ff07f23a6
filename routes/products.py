import io

import barcode
from barcode.errors import BarcodeError
from barcode.writer import SVGWriter
from flask import Blueprint, current_app, jsonify, request, send_file
from werkzeug.datastructures import MultiDict

from catalog import ALL, STOCK_STATUSES, filter_products, list_categories, summarize
from errors import ValidationError
from forms.product_forms import ProductForm, ProductUpdateForm
from models.product import FIELD_TO_JSON, JSON_FIELDS, READ_ONLY_JSON_FIELDS

products_bp = Blueprint('products', __name__, url_prefix='/api/products')


def get_store():
    return current_app.extensions['product_store']


def catalog_revision():
    return current_app.extensions['catalog_revision']


def json_errors(errors):
    return {FIELD_TO_JSON.get(k, k): v for k, v in errors.items()}


def read_filters(args):
    """Parámetros de filtrado del listado (también los usa la exportación)."""
    status = args.get('stock_status', ALL)
    if status != ALL and status not in STOCK_STATUSES:
        raise ValidationError({'stock_status': [f'Valor no válido: {status}']})
    return {
        'search': args.get('search', '').strip(),
        'category': args.get('category', ALL) or ALL,
        'stock_status': status,
    }


def filtered_products(filters):
    # la búsqueda de texto la resuelve el almacén; categoría y stock se filtran aquí
    products = get_store().search_products(filters['search'])
    return filter_products(products, category=filters['category'], stock_status=filters['stock_status'])


def _payload():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError({'body': ['Se esperaba un objeto JSON']})
    errors = {}
    fields = {}
    for key, value in data.items():
        if key in READ_ONLY_JSON_FIELDS:
            errors[key] = ['Campo no editable']
        elif key not in JSON_FIELDS:
            errors[key] = ['Campo desconocido']
        else:
            fields[JSON_FIELDS[key]] = value
    if errors:
        raise ValidationError(errors)
    return fields


def _validated(form_cls, fields, partial=False):
    formdata = MultiDict({k: '' if v is None else str(v) for k, v in fields.items()})
    form = form_cls(formdata=formdata, meta={'csrf': False})
    if not form.validate():
        raise ValidationError(form.errors)
    return form.product_fields(only=fields if partial else None)


@products_bp.route('/', methods=['GET'])
def list_products():
    filters = read_filters(request.args)
    items = filtered_products(filters)
    response = jsonify({
        'items': [p.to_dict() for p in items],
        'total': len(items),
        'revision': catalog_revision(),
    })
    response.headers['X-Catalog-Revision'] = str(catalog_revision())
    return response


@products_bp.route('/stats', methods=['GET'])
def product_stats():
    products = get_store().list_products()
    payload = summarize(products)
    payload['categories'] = list_categories(products)
    payload['uncategorized'] = sum(1 for p in products if not p.category_name)
    payload['revision'] = catalog_revision()
    return jsonify(payload)


@products_bp.route('/<int:product_id>', methods=['GET'])
def get_product(product_id):
    return jsonify(get_store().get_product(product_id).to_dict())


@products_bp.route('/barcode/<path:code>', methods=['GET'])
def get_product_by_barcode(code):
    return jsonify(get_store().get_product_by_barcode(code).to_dict())


@products_bp.route('/', methods=['POST'])
def create_product():
    fields = _validated(ProductForm, _payload())
    product = get_store().create_product(fields)
    return jsonify({
        'success': True,
        'message': 'El producto se agregó correctamente al inventario',
        'product': product.to_dict(),
    }), 201


@products_bp.route('/<int:product_id>', methods=['PUT', 'PATCH'])
def update_product(product_id):
    fields = _validated(ProductUpdateForm, _payload(), partial=True)
    product = get_store().update_product(product_id, fields)
    return jsonify({
        'success': True,
        'message': 'Los cambios se guardaron correctamente',
        'product': product.to_dict(),
    })


@products_bp.route('/<int:product_id>', methods=['DELETE'])
def delete_product(product_id):
    deleted = get_store().delete_product(product_id)
    return jsonify({
        'success': True,
        'deleted': deleted,
        'message': 'El producto se eliminó correctamente' if deleted else 'El producto ya no existía',
    })


@products_bp.route('/<int:product_id>/barcode.svg', methods=['GET'])
def barcode_label(product_id):
    """Etiqueta Code-128 del producto para imprimir."""
    product = get_store().get_product(product_id)
    code = product.barcode or ''
    if not code:
        return jsonify({'success': False, 'message': 'El producto no tiene código de barras'}), 404
    if not (code.isascii() and code.isprintable()):
        return jsonify({'success': False, 'message': 'El código no se puede imprimir en Code-128'}), 400
    writer_options = {'module_width': 0.2, 'module_height': 15.0, 'font_size': 10, 'text_distance': 5, 'quiet_zone': 2}
    try:
        label = barcode.get('code128', code, writer=SVGWriter())
        output = io.BytesIO()
        label.write(output, options=writer_options)
    except BarcodeError as e:
        return jsonify({'success': False, 'message': f'No se pudo generar la etiqueta: {e}'}), 400
    output.seek(0)
    return send_file(output, mimetype='image/svg+xml', download_name=f'{product.id}.svg')

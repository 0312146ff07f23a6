"""Filtros y estadísticas del listado de productos.

Todo se calcula sobre la colección que devuelve el almacén; nada se guarda.
"""
from decimal import Decimal

IN_STOCK = 'in-stock'
LOW_STOCK = 'low-stock'
OUT_OF_STOCK = 'out-of-stock'
STOCK_STATUSES = (IN_STOCK, LOW_STOCK, OUT_OF_STOCK)

ALL = 'all'
UNCATEGORIZED = 'uncategorized'

STOCK_LABELS = {
    IN_STOCK: 'En Stock',
    LOW_STOCK: 'Stock Bajo',
    OUT_OF_STOCK: 'Sin Stock',
}


def stock_status(product):
    if product.stock == 0:
        return OUT_OF_STOCK
    if product.stock <= product.min_stock:
        return LOW_STOCK
    return IN_STOCK


def matches_search(product, search):
    if not search:
        return True
    needle = search.casefold()
    return any(
        value and needle in value.casefold()
        for value in (product.name, product.barcode, product.category_name)
    )


def matches_category(product, category):
    if not category or category == ALL:
        return True
    if category == UNCATEGORIZED:
        return not product.category_name
    return product.category_name == category


def matches_stock_status(product, status):
    if not status or status == ALL:
        return True
    return stock_status(product) == status


def filter_products(products, search='', category=ALL, stock_status=ALL):
    """Aplica búsqueda de texto, categoría y estado de stock."""
    search = (search or '').strip()
    return [
        p for p in products
        if matches_search(p, search)
        and matches_category(p, category)
        and matches_stock_status(p, stock_status)
    ]


def list_categories(products):
    return sorted({p.category_name for p in products if p.category_name})


def summarize(products):
    # Valor total = suma de precio * stock, en Decimal
    total_value = sum((p.price * p.stock for p in products), Decimal('0.00'))
    return {
        'totalProducts': len(products),
        'lowStock': sum(1 for p in products if stock_status(p) == LOW_STOCK),
        'outOfStock': sum(1 for p in products if stock_status(p) == OUT_OF_STOCK),
        'totalValue': str(total_value.quantize(Decimal('0.01'))),
    }

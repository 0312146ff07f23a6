"""Exportación del catálogo a Excel y a sentencias INSERT de SQL."""
import io
from datetime import datetime, timezone

import pandas as pd
from flask_babel import format_datetime, gettext as _

from log import get_logger

LOG = get_logger("exports")

SHEET_NAME = 'Productos'
XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
SQL_COLUMNS = ('name', 'barcode', 'description', 'price', 'cost', 'stock', 'min_stock', 'category_name')


def export_filename(extension, today=None):
    today = today or datetime.now(timezone.utc).date()
    return f'inventario_{today.isoformat()}.{extension}'


def catalog_rows(products):
    """Filas con cabeceras localizadas y fechas en el formato del idioma activo."""
    rows = []
    for p in products:
        rows.append({
            _('ID'): p.id,
            _('Nombre'): p.name,
            _('Código de Barras'): p.barcode or '',
            _('Categoría'): p.category_name or '',
            _('Descripción'): p.description or '',
            _('Precio'): float(p.price),
            _('Costo'): float(p.cost) if p.cost is not None else '',
            _('Stock'): p.stock,
            _('Stock Mínimo'): p.min_stock,
            _('Fecha Creación'): format_datetime(p.created_at),
            _('Fecha Actualización'): format_datetime(p.updated_at),
        })
    return rows


def catalog_frame(products):
    columns = [
        _('ID'), _('Nombre'), _('Código de Barras'), _('Categoría'), _('Descripción'),
        _('Precio'), _('Costo'), _('Stock'), _('Stock Mínimo'),
        _('Fecha Creación'), _('Fecha Actualización'),
    ]
    return pd.DataFrame(catalog_rows(products), columns=columns)


def products_to_excel(products):
    """Devuelve un BytesIO con el libro .xlsx listo para send_file."""
    df = catalog_frame(products)
    sheet_name = _(SHEET_NAME)

    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='xlsxwriter') as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)

        worksheet = writer.sheets[sheet_name]
        workbook = writer.book

        # formato de cabeceras
        header_format = workbook.add_format({
            'bold': True,
            'text_wrap': True,
            'valign': 'top',
            'fg_color': '#D7E4BC',
            'border': 1,
            'align': 'center'
        })
        for col_num, value in enumerate(df.columns.values):
            worksheet.write(0, col_num, value, header_format)

        # ancho de columnas
        for i, col in enumerate(df.columns):
            longest = df[col].astype(str).map(len).max() if len(df) else 0
            worksheet.set_column(i, i, int(max(longest, len(col))) + 2)

    output.seek(0)
    LOG.info("Exported %d product(s) to xlsx", len(df))
    return output


def sql_literal(value):
    if value is None:
        return 'NULL'
    return "'" + str(value).replace("'", "''") + "'"


def product_insert(product):
    values = (
        sql_literal(product.name),
        sql_literal(product.barcode),
        sql_literal(product.description),
        str(product.price),
        str(product.cost) if product.cost is not None else 'NULL',
        str(product.stock),
        str(product.min_stock),
        sql_literal(product.category_name),
    )
    return (
        f"INSERT INTO inventory_products ({', '.join(SQL_COLUMNS)}) "
        f"VALUES ({', '.join(values)});"
    )


def products_to_sql(products, exported_at=None):
    """Texto SQL: cabecera de comentarios y los INSERT separados por líneas en blanco."""
    exported_at = exported_at or datetime.now(timezone.utc).replace(tzinfo=None)
    header = [
        '-- ' + _('Exportación de productos del inventario'),
        '-- ' + _('Fecha: %(date)s', date=format_datetime(exported_at)),
        '-- ' + _('Total de productos: %(count)d', count=len(products)),
    ]
    statements = [product_insert(p) for p in products]
    LOG.info("Exported %d product(s) to sql", len(statements))
    return '\n'.join(header) + '\n\n' + '\n\n'.join(statements) + ('\n' if statements else '')

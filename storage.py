"""Almacén de productos sobre Flask-SQLAlchemy.

Sólo hace coerción de tipos; no hay reglas de negocio. Cada mutación
confirmada se anuncia con la señal ``product_changed`` para que los
consumidores vuelvan a pedir el listado.
"""
from sqlalchemy.exc import SQLAlchemyError

from catalog import matches_search
from errors import ProductNotFound, ValidationError
from log import get_logger
from models import db
from models.product import Product
from models.types import INT32_MAX, to_money
from models.user import User
from signals import product_changed

LOG = get_logger("storage")

EDITABLE_FIELDS = (
    'name', 'barcode', 'description', 'price', 'cost',
    'stock', 'min_stock', 'category_name',
)
# columnas NOT NULL: en una actualización no se pueden vaciar
NOT_NULL_FIELDS = ('name', 'price', 'stock', 'min_stock')
CATEGORY_MAX_LENGTH = 100


def _name(value):
    text = str(value).strip() if value is not None else ''
    if not text:
        raise ValueError('El nombre es requerido')
    return text


def _optional_text(value):
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _category(value):
    text = _optional_text(value)
    if text is not None and len(text) > CATEGORY_MAX_LENGTH:
        raise ValueError(f'Máximo {CATEGORY_MAX_LENGTH} caracteres')
    return text


def _non_negative_money(value):
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    amount = to_money(value)
    if amount < 0:
        raise ValueError('Debe ser mayor o igual a 0')
    return amount


def _non_negative_int(value):
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValueError('Debe ser un número entero')
    if isinstance(value, float) and not value.is_integer():
        raise ValueError('Debe ser un número entero')
    try:
        number = int(str(value).strip()) if isinstance(value, str) else int(value)
    except (TypeError, ValueError):
        raise ValueError('Debe ser un número entero') from None
    if number < 0:
        raise ValueError('Debe ser mayor o igual a 0')
    if number > INT32_MAX:
        raise ValueError(f'No puede superar {INT32_MAX}')
    return number


_COERCERS = {
    'name': _name,
    'barcode': _optional_text,
    'description': _optional_text,
    'price': _non_negative_money,
    'cost': _non_negative_money,
    'stock': _non_negative_int,
    'min_stock': _non_negative_int,
    'category_name': _category,
}


class ProductStore:
    """CRUD y búsqueda de productos, más los accesos a usuarios del esquema."""

    def _coerce(self, fields, partial=False):
        errors = {}
        values = {}
        for key, raw in fields.items():
            if key not in _COERCERS:
                errors[key] = ['Campo no editable']
                continue
            try:
                values[key] = _COERCERS[key](raw)
            except ValueError as exc:
                errors.setdefault(key, []).append(str(exc))

        if partial:
            missing = [k for k in NOT_NULL_FIELDS if k in values and values[k] is None]
        else:
            missing = [k for k in ('name', 'price') if values.get(k) is None]
        for key in missing:
            if key not in errors:
                errors[key] = ['Campo obligatorio']

        if errors:
            raise ValidationError(errors)
        return values

    def _commit(self):
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            LOG.exception("Database commit failed")
            raise

    # --- Productos ---

    def create_product(self, fields):
        values = self._coerce(fields)
        for key in ('stock', 'min_stock'):
            if values.get(key) is None:
                values[key] = 0
        product = Product(**values)
        db.session.add(product)
        self._commit()
        LOG.info("Created product %s (%s)", product.id, product.name)
        product_changed.send(self, action='created', product=product)
        return product

    def list_products(self):
        return Product.query.order_by(Product.created_at.desc(), Product.id.desc()).all()

    def get_product(self, product_id):
        product = db.session.get(Product, product_id)
        if product is None:
            raise ProductNotFound(product_id)
        return product

    def get_product_by_barcode(self, barcode):
        code = (barcode or '').strip()
        product = None
        if code:
            product = (
                Product.query.filter_by(barcode=code)
                .order_by(Product.created_at.desc(), Product.id.desc())
                .first()
            )
        if product is None:
            raise ProductNotFound(barcode)
        return product

    def update_product(self, product_id, fields):
        product = self.get_product(product_id)
        values = self._coerce(fields, partial=True)
        if not values:
            return product
        for key, value in values.items():
            setattr(product, key, value)
        self._commit()
        LOG.info("Updated product %s: %s", product.id, ', '.join(sorted(values)))
        product_changed.send(self, action='updated', product=product)
        return product

    def delete_product(self, product_id):
        product = db.session.get(Product, product_id)
        if product is None:
            LOG.debug("Delete of missing product %s ignored", product_id)
            return False
        db.session.delete(product)
        self._commit()
        LOG.info("Deleted product %s", product_id)
        product_changed.send(self, action='deleted', product=product)
        return True

    def search_products(self, text):
        # casefold en Python: LIKE de SQLite sólo ignora mayúsculas en ASCII
        query = (text or '').strip()
        products = self.list_products()
        if not query:
            return products
        return [p for p in products if matches_search(p, query)]

    # --- Usuarios ---

    def get_user(self, user_id):
        return db.session.get(User, user_id)

    def get_user_by_username(self, username):
        return User.query.filter_by(username=username).first()

    def create_user(self, username, password):
        username = (username or '').strip()
        errors = {}
        if not username:
            errors['username'] = ['Campo obligatorio']
        elif self.get_user_by_username(username) is not None:
            errors['username'] = ['El nombre de usuario ya existe']
        if not password:
            errors['password'] = ['Campo obligatorio']
        if errors:
            raise ValidationError(errors)
        user = User(username=username)
        user.set_password(password)
        db.session.add(user)
        self._commit()
        LOG.info("Created user %s", username)
        return user

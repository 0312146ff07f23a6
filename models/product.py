from datetime import datetime, timezone

from models import db
from models.types import Money


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Producto del inventario
class Product(db.Model):
    __tablename__ = 'inventory_products'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.Text, nullable=False)
    barcode = db.Column(db.Text, nullable=True, index=True)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(Money, nullable=False)
    cost = db.Column(Money, nullable=True)
    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    category_name = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f'<Product {self.name}>'

    def to_dict(self):
        """Representación JSON; los importes viajan como texto decimal."""
        return {
            'id': self.id,
            'name': self.name,
            'barcode': self.barcode,
            'description': self.description,
            'price': str(self.price),
            'cost': str(self.cost) if self.cost is not None else None,
            'stock': self.stock,
            'minStock': self.min_stock,
            'categoryName': self.category_name,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }


# Nombres en el JSON de la API -> columnas del modelo
JSON_FIELDS = {
    'name': 'name',
    'barcode': 'barcode',
    'description': 'description',
    'price': 'price',
    'cost': 'cost',
    'stock': 'stock',
    'minStock': 'min_stock',
    'categoryName': 'category_name',
}
READ_ONLY_JSON_FIELDS = ('id', 'createdAt', 'updatedAt')
FIELD_TO_JSON = {v: k for k, v in JSON_FIELDS.items()}

from flask_wtf import FlaskForm
from wtforms import StringField, TextAreaField, DecimalField, IntegerField
from wtforms.validators import DataRequired, InputRequired, Length, NumberRange, Optional, ValidationError

from models.types import INT32_MAX, MONEY_MAX


def two_decimals(form, field):
    if field.data is not None and field.data.normalize().as_tuple().exponent < -2:
        raise ValidationError('Máximo dos decimales')


def _money_range(label):
    return NumberRange(min=0, max=MONEY_MAX, message=f'{label} debe estar entre 0 y {MONEY_MAX}')


def _count_range(label):
    return NumberRange(min=0, max=INT32_MAX, message=f'{label} debe estar entre 0 y {INT32_MAX}')


class ProductForm(FlaskForm):
    name = StringField('Nombre', validators=[DataRequired(message='El nombre es requerido')])
    barcode = StringField('Código de Barras', validators=[Optional()])
    description = TextAreaField('Descripción', validators=[Optional()])
    price = DecimalField('Precio', places=2, validators=[
        InputRequired(message='El precio es requerido'),
        _money_range('El precio'),
        two_decimals,
    ])
    cost = DecimalField('Costo', places=2, validators=[Optional(), _money_range('El costo'), two_decimals])
    stock = IntegerField('Stock', default=0, validators=[Optional(), _count_range('El stock')])
    min_stock = IntegerField('Stock Mínimo', default=0, validators=[Optional(), _count_range('El stock mínimo')])
    category_name = StringField('Categoría', validators=[Optional(), Length(max=100)])

    def product_fields(self, only=None):
        """Datos limpios para el almacén; ``only`` limita a los campos enviados."""
        names = [f.name for f in self if f.name != 'csrf_token']
        if only is not None:
            names = [n for n in names if n in only]
        return {n: self[n].data for n in names}


# Actualización parcial: ningún campo es obligatorio, pero si llega se valida igual
class ProductUpdateForm(ProductForm):
    name = StringField('Nombre', validators=[Optional()])
    price = DecimalField('Precio', places=2, validators=[Optional(), _money_range('El precio'), two_decimals])
    stock = IntegerField('Stock', validators=[Optional(), _count_range('El stock')])
    min_stock = IntegerField('Stock Mínimo', validators=[Optional(), _count_range('El stock mínimo')])

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from sqlalchemy.types import BigInteger, TypeDecorator

CENT = Decimal('0.01')
# mismo rango que numeric(10,2)
MONEY_MAX = Decimal('99999999.99')
# columnas Integer de stock
INT32_MAX = 2147483647


def to_money(value):
    """Convierte a Decimal con dos decimales (sin pasar por float binario)."""
    if value is None:
        return None
    if not isinstance(value, Decimal):
        # str(float) da la representación corta: 19.99 -> '19.99'
        try:
            value = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f'Importe no válido: {value!r}') from None
    if not value.is_finite():
        raise ValueError(f'Importe no válido: {value!r}')
    try:
        amount = value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f'Importe no válido: {value!r}') from None
    if abs(amount) > MONEY_MAX:
        raise ValueError(f'El importe no puede superar {MONEY_MAX}')
    return amount


class Money(TypeDecorator):
    """Importe en punto fijo: se guarda en céntimos enteros y se lee como Decimal."""

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(to_money(value).scaleb(2))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(int(value)).scaleb(-2).quantize(CENT)

"""
Validadores y normalizadores para datos de facturación (México)
"""
import re
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


RFC_MIN_LENGTH = 12
RFC_MAX_LENGTH = 13

# Rango de las columnas Numeric(15, 2)
MAX_AMOUNT = Decimal("9999999999999.99")

MAX_CREDIT_DAYS = 3650

# Día cero de las fechas seriales de Excel (sistema 1900, con el bug del 29/02/1900)
EXCEL_EPOCH = date(1899, 12, 30)

_ISO_PATTERN = re.compile(r'^(\d{4})-(\d{2})-(\d{2})$')
_DDMM_PATTERN = re.compile(r'^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4})$')


class AmountOutOfRangeError(ValueError):
    """Monto numérico válido pero fuera del rango que admite la base de datos"""


def is_blank(value: Any) -> bool:
    """None o cadena vacía / solo espacios"""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return False


def normalize_date_string(value: Any) -> Optional[date]:
    """
    Normaliza una fecha de captura o de Excel a `date`.
    Formatos válidos:
    - YYYY-MM-DD
    - DD/MM/YYYY (también con '-' o '.' como separador)
    - Número serial de Excel
    - datetime / date nativos (celdas con formato fecha)

    Retorna None si el valor está vacío. Lanza ValueError si el formato no
    es soportado o la fecha no existe.
    """
    if is_blank(value):
        return None

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, bool):
        raise ValueError(f"Formato de fecha no soportado: {value}")

    if isinstance(value, (int, float, Decimal)):
        try:
            return EXCEL_EPOCH + timedelta(days=int(value))
        except (OverflowError, ValueError):
            raise ValueError(f"Fecha serial fuera de rango: {value}")

    if isinstance(value, str):
        cleaned = value.strip()
        # Fecha con hora (ej. "2025-01-15T00:00:00" o "2025-01-15 00:00:00")
        if len(cleaned) > 10 and cleaned[10] in ("T", " "):
            cleaned = cleaned[:10]

        iso_match = _ISO_PATTERN.match(cleaned)
        if iso_match:
            year, month, day = (int(part) for part in iso_match.groups())
            return date(year, month, day)

        ddmm_match = _DDMM_PATTERN.match(cleaned)
        if ddmm_match:
            day, month, year = (int(part) for part in ddmm_match.groups())
            return date(year, month, day)

    raise ValueError(f"Formato de fecha no soportado: {value}")


def parse_money(value: Any) -> Decimal:
    """
    Convierte un monto capturado a Decimal.
    Acepta separadores de miles con coma, espacios y un '$' inicial:
    "25,000.50", " $1,200 ", 8500.25

    Lanza ValueError si el valor no es numérico.
    """
    if is_blank(value) or isinstance(value, bool):
        raise ValueError(f"Monto inválido: {value!r}")

    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        # str() evita arrastrar el error binario del float
        amount = Decimal(str(value))
    else:
        cleaned = str(value).strip()
        if cleaned.startswith("$"):
            cleaned = cleaned[1:].strip()
        cleaned = cleaned.replace(",", "")
        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            raise ValueError(f"Monto inválido: {value!r}")

    if not amount.is_finite():
        raise ValueError(f"Monto inválido: {value!r}")
    if abs(amount) > MAX_AMOUNT:
        raise AmountOutOfRangeError(f"Monto fuera de rango: {value!r}")
    return amount


def parse_credit_days(value: Any) -> int:
    """
    Días de crédito como entero entre 0 y MAX_CREDIT_DAYS.
    Lanza ValueError si no lo es.
    """
    if is_blank(value):
        return 0
    amount = parse_money(value)
    if amount < 0 or amount > MAX_CREDIT_DAYS or amount != amount.to_integral_value():
        raise ValueError(f"Días de crédito inválidos: {value!r}")
    return int(amount)


def normalize_rfc(rfc: str) -> str:
    """RFC sin espacios y en mayúsculas"""
    return re.sub(r'\s', '', rfc).upper()


def add_days(start: date, days: int) -> date:
    """
    Fecha más N días (vencimiento a partir de los días de crédito).
    Lanza ValueError si el resultado sale del rango de fechas.
    """
    try:
        return start + timedelta(days=days)
    except OverflowError:
        raise ValueError(f"Fecha fuera de rango: {start} + {days} días")

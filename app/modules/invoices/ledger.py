"""
Conciliación del saldo de una factura.

Una factura tiene un total fijo, hasta tres pagos parciales y un monto de
nota de crédito. De ellos se derivan:

    por_cobrar = max(0, total - (pago1 + pago2 + pago3 + nc))
    estatus    = Pagada si por_cobrar <= PAID_THRESHOLD, si no Pendiente

Es la única implementación de la regla: alta, edición, validación de carga
masiva y confirmación de carga masiva llaman a `reconcile` / `apply_ledger`.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any
import logging

from app.modules.invoices.models import InvoiceStatus

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

# Saldo a partir del cual la factura se considera liquidada
PAID_THRESHOLD = Decimal("0")

PAYMENT_FIELDS = ("pago1", "pago2", "pago3", "nc")


@dataclass(frozen=True)
class LedgerState:
    por_cobrar: Decimal
    estatus: InvoiceStatus


def to_money(value: Any) -> Decimal:
    """Convertir a Decimal redondeado a centavos (None cuenta como 0)"""
    if value is None:
        return Decimal("0.00")
    try:
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        return value.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Monto inválido o fuera de rango: {value}")


def reconcile(total: Any, pago1: Any = 0, pago2: Any = 0, pago3: Any = 0, nc: Any = 0) -> LedgerState:
    """
    Calcular saldo por cobrar y estatus.

    Args:
        total: Monto de la factura
        pago1, pago2, pago3: Pagos parciales registrados
        nc: Monto de nota de crédito aplicado

    Returns:
        LedgerState con por_cobrar (>= 0) y estatus

    Raises:
        ValueError: si algún monto es negativo o no cabe en centavos
    """
    amounts = {
        "total": to_money(total),
        "pago1": to_money(pago1),
        "pago2": to_money(pago2),
        "pago3": to_money(pago3),
        "nc": to_money(nc),
    }
    for name, amount in amounts.items():
        if amount < 0:
            raise ValueError(f"El campo {name} no puede ser negativo")

    suma_pagos = amounts["pago1"] + amounts["pago2"] + amounts["pago3"] + amounts["nc"]
    saldo = amounts["total"] - suma_pagos

    if saldo < 0:
        # Se cobra de más: el saldo se fija en 0 y el excedente solo queda en el log
        logger.warning(
            f"Pagos ({suma_pagos}) exceden el total ({amounts['total']}); "
            f"excedente de {-saldo} no se refleja en por_cobrar"
        )

    por_cobrar = max(Decimal("0.00"), saldo)
    estatus = InvoiceStatus.PAGADA if por_cobrar <= PAID_THRESHOLD else InvoiceStatus.PENDIENTE
    return LedgerState(por_cobrar=por_cobrar, estatus=estatus)


def apply_ledger(target: Any) -> LedgerState:
    """
    Recalcular y escribir por_cobrar/estatus sobre un objeto con los campos
    de factura (modelo ORM o esquema pydantic).
    """
    state = reconcile(
        getattr(target, "total", 0),
        *(getattr(target, field, 0) for field in PAYMENT_FIELDS)
    )
    target.por_cobrar = state.por_cobrar
    target.estatus = state.estatus
    return state

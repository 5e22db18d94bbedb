"""
Validación de archivos de carga masiva de facturas.

Convierte un archivo (xlsx o csv) en un BulkValidationResult sin tocar la
base de datos, para que el usuario revise el análisis antes de confirmar.

Layout posicional (fila 1 = encabezado, se ignora):
    paqueteria | numero_comprobante | cliente | rfc | credito |
    fecha_creacion | fecha_vencimiento | total
Las columnas adicionales se ignoran.
"""
from dataclasses import dataclass, field
from io import BytesIO, StringIO
from typing import Any, List, Optional, Tuple
import csv
import logging

from openpyxl import load_workbook
from pydantic import ValidationError

from app.common.validators import (
    is_blank, normalize_date_string, normalize_rfc, parse_credit_days, parse_money,
    AmountOutOfRangeError, MAX_AMOUNT, MAX_CREDIT_DAYS, RFC_MIN_LENGTH, RFC_MAX_LENGTH
)
from app.modules.invoices.ledger import apply_ledger
from app.modules.invoices.schemas import BulkValidationIssue, BulkValidationResult, InvoiceCandidate

logger = logging.getLogger(__name__)

LAYOUT_COLUMNS = (
    "paqueteria", "numero_comprobante", "cliente", "rfc", "credito",
    "fecha_creacion", "fecha_vencimiento", "total",
)

HEADER_ROW = 1


@dataclass(frozen=True)
class RawRow:
    """Fila tal como viene en el archivo"""
    fila: int
    cells: Tuple[Any, ...]

    def value(self, column: str) -> Any:
        index = LAYOUT_COLUMNS.index(column)
        return self.cells[index] if index < len(self.cells) else None


@dataclass
class RowValidation:
    """Resultado de validar una fila: una factura candidata o la lista de problemas"""
    raw: RawRow
    candidate: Optional[InvoiceCandidate] = None
    issues: List[BulkValidationIssue] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(issue.severidad == "error" for issue in self.issues)

    @property
    def has_warnings(self) -> bool:
        return any(issue.severidad == "warning" for issue in self.issues)

    def add(self, campo: str, valor: Any, error: str, severidad: str = "error"):
        self.issues.append(BulkValidationIssue(
            fila=self.raw.fila, campo=campo, valor=valor, error=error, severidad=severidad
        ))


def _read_xlsx(content: bytes) -> List[Tuple[Any, ...]]:
    workbook = load_workbook(filename=BytesIO(content), read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        return [tuple(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def _read_csv(content: bytes) -> List[Tuple[Any, ...]]:
    text = content.decode("utf-8-sig")
    return [tuple(row) for row in csv.reader(StringIO(text))]


def read_rows(content: bytes, filename: Optional[str] = None) -> List[RawRow]:
    """
    Leer las filas de datos del archivo.

    Omite el encabezado y las filas vacías o sin valor en la primera celda
    (renglones en blanco al final de la hoja); esas filas no cuentan.
    Lanza la excepción del lector si el archivo no se puede interpretar.
    """
    if filename and filename.lower().endswith(".csv"):
        rows = _read_csv(content)
    else:
        rows = _read_xlsx(content)

    raw_rows = []
    for fila, cells in enumerate(rows, start=1):
        if fila <= HEADER_ROW:
            continue
        if not cells or is_blank(cells[0]):
            continue
        raw_rows.append(RawRow(fila=fila, cells=cells))
    return raw_rows


def validate_row(raw: RawRow) -> RowValidation:
    """
    Validar una fila del layout.

    Errores (bloquean la fila), en este orden: paqueteria, numero_comprobante,
    cliente, rfc, total, fecha_creacion.
    Advertencias (la fila se acepta con un valor por defecto): credito,
    fecha_vencimiento.
    """
    outcome = RowValidation(raw=raw)

    paqueteria = raw.value("paqueteria")
    numero = raw.value("numero_comprobante")
    cliente = raw.value("cliente")
    rfc = raw.value("rfc")
    credito = raw.value("credito")
    fecha_creacion = raw.value("fecha_creacion")
    fecha_vencimiento = raw.value("fecha_vencimiento")
    total = raw.value("total")

    if is_blank(paqueteria):
        outcome.add("paqueteria", paqueteria, "Paquetería es obligatoria")

    if is_blank(numero):
        outcome.add("numero_comprobante", numero, "Número de comprobante es obligatorio")

    if is_blank(cliente):
        outcome.add("cliente", cliente, "Cliente es obligatorio")

    rfc_text = "" if is_blank(rfc) else normalize_rfc(str(rfc))
    if len(rfc_text) < RFC_MIN_LENGTH:
        outcome.add("rfc", rfc, f"RFC debe tener al menos {RFC_MIN_LENGTH} caracteres")
    elif len(rfc_text) > RFC_MAX_LENGTH:
        outcome.add("rfc", rfc, f"RFC debe tener máximo {RFC_MAX_LENGTH} caracteres")

    total_amount = None
    try:
        total_amount = parse_money(total)
        if total_amount < 0:
            outcome.add("total", total, "Total debe ser un número positivo")
    except AmountOutOfRangeError:
        outcome.add("total", total, f"Total excede el máximo permitido ({MAX_AMOUNT:,})")
    except ValueError:
        outcome.add("total", total, "Total debe ser un número válido")

    fecha = None
    if is_blank(fecha_creacion):
        outcome.add("fecha_creacion", fecha_creacion, "Fecha de creación es obligatoria")
    else:
        try:
            fecha = normalize_date_string(fecha_creacion)
        except ValueError as e:
            outcome.add("fecha_creacion", fecha_creacion, str(e))

    dias_credito = 0
    try:
        dias_credito = parse_credit_days(credito)
    except ValueError:
        outcome.add(
            "credito", credito,
            f"Crédito inválido (entero de 0 a {MAX_CREDIT_DAYS}), se usarán 0 días",
            severidad="warning"
        )

    vencimiento = None
    if not is_blank(fecha_vencimiento):
        try:
            vencimiento = normalize_date_string(fecha_vencimiento)
        except ValueError:
            outcome.add(
                "fecha_vencimiento", fecha_vencimiento,
                "Fecha de vencimiento inválida, se calculará con los días de crédito",
                severidad="warning"
            )

    if outcome.has_errors:
        return outcome

    try:
        candidate = InvoiceCandidate(
            fila=raw.fila,
            paqueteria=paqueteria,
            numero_comprobante=numero,
            cliente=cliente,
            rfc=rfc_text,
            credito=dias_credito,
            fecha_creacion=fecha,
            fecha_vencimiento=vencimiento,
            total=total_amount,
        )
    except ValidationError as e:
        for err in e.errors():
            # Sin loc: validación del modelo completo (vencimiento por días de crédito)
            campo = str(err["loc"][0]) if err.get("loc") else "fecha_vencimiento"
            outcome.add(campo, raw.value(campo) if campo in LAYOUT_COLUMNS else None, err["msg"])
        return outcome

    apply_ledger(candidate)
    outcome.candidate = candidate
    return outcome


def validate_bulk_file(content: bytes, filename: Optional[str] = None) -> BulkValidationResult:
    """
    Analizar un archivo de carga masiva.

    Nunca lanza por contenido inválido: un archivo que no se puede leer
    produce un resultado con un único error de campo 'archivo' y contadores
    en cero.
    """
    try:
        raw_rows = read_rows(content, filename)
    except Exception as e:
        logger.warning(f"Bulk file could not be parsed ({filename}): {e}")
        return BulkValidationResult(errores=[BulkValidationIssue(
            fila=1,
            campo="archivo",
            valor=filename,
            error=f"Error procesando archivo: {e}",
            severidad="error",
        )])

    result = BulkValidationResult()
    for raw in raw_rows:
        outcome = validate_row(raw)
        result.total_lineas += 1
        result.errores.extend(outcome.issues)

        if outcome.has_warnings:
            result.lineas_con_advertencias += 1

        if outcome.candidate is not None:
            result.lineas_correctas += 1
            result.datos_correctos.append(outcome.candidate)
        else:
            result.lineas_con_errores += 1
            result.datos_con_errores.append(list(raw.cells))

    logger.info(
        f"Bulk file analyzed ({filename}): {result.total_lineas} lines, "
        f"{result.lineas_correctas} ok, {result.lineas_con_errores} with errors, "
        f"{result.lineas_con_advertencias} with warnings"
    )
    return result

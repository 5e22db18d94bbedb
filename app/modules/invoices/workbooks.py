"""Generación de archivos Excel: layout de carga masiva y exportación de facturas."""

from datetime import date
from io import BytesIO
from typing import Iterable, List

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from app.modules.invoices.importer import LAYOUT_COLUMNS
from app.modules.invoices.models import Invoice

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="1F4E78", end_color="1F4E78", fill_type="solid")
MONEY_FORMAT = "#,##0.00"

LAYOUT_EXAMPLES = [
    ["DHL", "FAC-2025-001", "EMPRESA EJEMPLO SA", "EEJ990101AAA", 30, "2025-01-15", "2025-02-14", 25000.50],
    ["FedEx", "FAC-2025-002", "CLIENTE DEMO SC", "CDE990202BBB", 15, "2025-01-16", "2025-01-31", 15750.00],
    ["UPS", "FAC-2025-003", "NEGOCIO PRUEBA", "NPR990303CCC", 0, "2025-01-17", "2025-01-17", 8500.25],
]

EXPORT_COLUMNS = [
    ("#", None),
    ("Paquetería", "paqueteria"),
    ("Número de Comprobante", "numero_comprobante"),
    ("Cliente", "cliente"),
    ("RFC", "rfc"),
    ("Crédito (días)", "credito"),
    ("Fecha de Creación", "fecha_creacion"),
    ("Fecha de Vencimiento", "fecha_vencimiento"),
    ("Total", "total"),
    ("Pago 1", "pago1"),
    ("Fecha Pago 1", "fecha_pago1"),
    ("Pago 2", "pago2"),
    ("Fecha Pago 2", "fecha_pago2"),
    ("Pago 3", "pago3"),
    ("Fecha Pago 3", "fecha_pago3"),
    ("Nota de Crédito", "nc"),
    ("Por Cobrar", "por_cobrar"),
    ("Estatus", "estatus"),
    ("Comentarios", "comentarios"),
    ("CFDI", "cfdi"),
]

MONEY_ATTRIBUTES = {"total", "pago1", "pago2", "pago3", "nc", "por_cobrar"}


def _write_header(sheet, headers: List[str]):
    for col, header in enumerate(headers, 1):
        cell = sheet.cell(row=1, column=col, value=header)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal="center")


def _autosize(sheet):
    for col in range(1, sheet.max_column + 1):
        max_len = max(
            (len(str(sheet.cell(row=r, column=col).value or "")) for r in range(1, sheet.max_row + 1)),
            default=10,
        )
        sheet.column_dimensions[get_column_letter(col)].width = min(max(max_len + 2, 12), 40)


def _to_bytes(workbook: Workbook) -> bytes:
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def build_layout_workbook() -> bytes:
    """Plantilla para carga masiva: encabezados del layout y tres filas de ejemplo"""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Layout_Facturacion"

    _write_header(sheet, list(LAYOUT_COLUMNS))
    for row in LAYOUT_EXAMPLES:
        sheet.append(row)

    _autosize(sheet)
    return _to_bytes(workbook)


def build_export_workbook(invoices: Iterable[Invoice]) -> bytes:
    """Exportar facturas (un renglón por factura) con formato de moneda"""
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Facturas"

    _write_header(sheet, [header for header, _ in EXPORT_COLUMNS])

    for index, invoice in enumerate(invoices, 1):
        row_number = index + 1
        for col, (_, attribute) in enumerate(EXPORT_COLUMNS, 1):
            if attribute is None:
                value = index
            else:
                value = getattr(invoice, attribute)
                if attribute == "estatus" and value is not None:
                    value = value.value
            cell = sheet.cell(row=row_number, column=col, value=value)
            if attribute in MONEY_ATTRIBUTES:
                cell.number_format = MONEY_FORMAT
                cell.alignment = Alignment(horizontal="right")
            elif isinstance(value, date):
                cell.number_format = "yyyy-mm-dd"

    _autosize(sheet)
    return _to_bytes(workbook)


def export_filename(prefix: str = "Facturas") -> str:
    return f"{prefix}_{date.today().isoformat()}.xlsx"

"""
Tests para el módulo de Facturación

Cubren:
- Conciliación de saldo (por_cobrar / estatus)
- Normalización de fechas, montos y RFC
- Validación de archivos de carga masiva (sin base de datos)
- Confirmación de carga masiva con fallas parciales
- Endpoints CRUD, vencidas, layout, exportación y permisos
"""

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from types import SimpleNamespace
from uuid import uuid4
from datetime import date, datetime, timedelta
from decimal import Decimal
from io import BytesIO

from openpyxl import Workbook, load_workbook

from app.main import app
from app.common.validators import (
    normalize_date_string, normalize_rfc, parse_money, parse_credit_days, add_days,
    AmountOutOfRangeError, MAX_AMOUNT
)
from app.core.config import settings
from app.modules.invoices.importer import LAYOUT_COLUMNS, RawRow, validate_row, validate_bulk_file
from app.modules.invoices.ledger import reconcile, apply_ledger, PAID_THRESHOLD
from app.modules.invoices.models import Invoice, InvoiceStatus
from app.modules.invoices.schemas import InvoiceCreate, InvoiceCandidate, InvoiceUpdate, InvoiceFilters
from app.modules.invoices.service import InvoiceService
from app.modules.invoices.workbooks import build_layout_workbook, XLSX_MEDIA_TYPE
from app.modules.notifications.models import Notification, NotificationType
from app.modules.notifications.service import NotificationService


client = TestClient(app)


# ===== FIXTURES =====

@pytest.fixture
def sample_invoice_data():
    """Factura con un pago parcial"""
    return {
        "paqueteria": "DHL",
        "numero_comprobante": "FAC-2025-001",
        "cliente": "EMPRESA EJEMPLO SA",
        "rfc": "EEJ990101AAA",
        "credito": 30,
        "fecha_creacion": "2025-01-15",
        "total": "25000.50",
        "pago1": "10000",
        "fecha_pago1": "2025-01-20",
    }


def _invoice_payload(numero: str, **overrides):
    data = {
        "paqueteria": "FedEx",
        "numero_comprobante": numero,
        "cliente": "CLIENTE DEMO SC",
        "rfc": "CDE990202BBB",
        "credito": 15,
        "fecha_creacion": "2025-01-16",
        "total": "15750.00",
    }
    data.update(overrides)
    return data


def _xlsx(rows, header=LAYOUT_COLUMNS) -> bytes:
    """Archivo de carga masiva en memoria"""
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(list(header))
    for row in rows:
        sheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


VALID_ROW = ["DHL", "FAC-2025-001", "EMPRESA EJEMPLO SA", "EEJ990101AAA", 30, "2025-01-15", "2025-02-14", 25000.50]


# ===== TESTS DE CONCILIACIÓN =====

class TestLedger:
    """Tests para la regla de saldo por cobrar"""

    def test_partial_payment_leaves_balance(self):
        state = reconcile(Decimal("25000.50"), pago1=Decimal("10000"))

        assert state.por_cobrar == Decimal("15000.50")
        assert state.estatus == InvoiceStatus.PENDIENTE

    def test_full_payment_marks_paid(self):
        state = reconcile("8500.25", pago1="8500.25")

        assert state.por_cobrar == Decimal("0")
        assert state.estatus == InvoiceStatus.PAGADA

    def test_credit_note_counts_as_payment(self):
        state = reconcile(1000, pago1=300, pago2=200, pago3=100, nc=400)

        assert state.por_cobrar == Decimal("0")
        assert state.estatus == InvoiceStatus.PAGADA

    def test_float_inputs_do_not_drift(self):
        state = reconcile(0.3, pago1=0.1, pago2=0.2)

        assert state.por_cobrar == Decimal("0.00")
        assert state.estatus == InvoiceStatus.PAGADA

    def test_zero_total_is_paid(self):
        assert reconcile(0).estatus == InvoiceStatus.PAGADA

    def test_overpayment_clamps_to_zero_and_logs(self, caplog):
        state = reconcile(100, pago1=80, pago2=50)

        assert state.por_cobrar == Decimal("0")
        assert state.estatus == InvoiceStatus.PAGADA
        assert any("exceden el total" in record.message for record in caplog.records)

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            reconcile(100, pago1=-5)

    def test_amount_beyond_cents_precision_rejected(self):
        with pytest.raises(ValueError):
            reconcile(Decimal("1e30"))

    @pytest.mark.parametrize("total,pagos", [
        (Decimal("100"), (Decimal("0"), Decimal("0"), Decimal("0"), Decimal("0"))),
        (Decimal("100"), (Decimal("99.99"), Decimal("0"), Decimal("0"), Decimal("0"))),
        (Decimal("100"), (Decimal("50"), Decimal("25"), Decimal("25"), Decimal("0"))),
        (Decimal("1234.56"), (Decimal("0"), Decimal("0"), Decimal("0"), Decimal("2000"))),
        (Decimal("0.01"), (Decimal("0"), Decimal("0"), Decimal("0"), Decimal("0"))),
    ])
    def test_balance_invariant(self, total, pagos):
        state = reconcile(total, *pagos)

        assert state.por_cobrar == max(Decimal("0"), total - sum(pagos))
        assert state.por_cobrar >= 0
        assert (state.estatus == InvoiceStatus.PAGADA) == (state.por_cobrar <= PAID_THRESHOLD)

    def test_apply_ledger_is_idempotent(self):
        target = SimpleNamespace(total=Decimal("500"), pago1=Decimal("500"), pago2=0, pago3=0, nc=0)

        first = apply_ledger(target)
        second = apply_ledger(target)

        assert first == second
        assert target.estatus == InvoiceStatus.PAGADA
        assert target.por_cobrar == Decimal("0")


# ===== TESTS DE VALIDADORES =====

class TestValidators:
    """Tests para normalización de datos capturados"""

    @pytest.mark.parametrize("value,expected", [
        ("2025-01-15", date(2025, 1, 15)),
        ("15/01/2025", date(2025, 1, 15)),
        ("15-01-2025", date(2025, 1, 15)),
        ("15.01.2025", date(2025, 1, 15)),
        ("2025-01-15T00:00:00", date(2025, 1, 15)),
        (45672, date(2025, 1, 15)),
        (datetime(2025, 1, 15, 10, 30), date(2025, 1, 15)),
        (date(2025, 1, 15), date(2025, 1, 15)),
    ])
    def test_normalize_date_formats(self, value, expected):
        assert normalize_date_string(value) == expected

    def test_normalize_blank_date(self):
        assert normalize_date_string("  ") is None
        assert normalize_date_string(None) is None

    @pytest.mark.parametrize("value", ["enero 15", "2025/13/45", "31/02/2025"])
    def test_normalize_invalid_date(self, value):
        with pytest.raises(ValueError):
            normalize_date_string(value)

    def test_parse_money_strips_formatting(self):
        assert parse_money(" $25,000.50 ") == Decimal("25000.50")
        assert parse_money(8500.25) == Decimal("8500.25")

    def test_parse_money_rejects_text(self):
        with pytest.raises(ValueError):
            parse_money("veinte mil")

    def test_parse_credit_days(self):
        assert parse_credit_days(30) == 30
        assert parse_credit_days("") == 0
        with pytest.raises(ValueError):
            parse_credit_days("-5")
        with pytest.raises(ValueError):
            parse_credit_days(1.5)

    def test_normalize_rfc(self):
        assert normalize_rfc(" pegj 800101\tab1 ") == "PEGJ800101AB1"

    def test_serial_date_out_of_range(self):
        with pytest.raises(ValueError):
            normalize_date_string(5000000)
        with pytest.raises(ValueError):
            normalize_date_string(float("inf"))

    def test_parse_money_out_of_range(self):
        assert parse_money("9,999,999,999,999.99") == MAX_AMOUNT
        with pytest.raises(AmountOutOfRangeError):
            parse_money("1e30")
        with pytest.raises(AmountOutOfRangeError):
            parse_money("10000000000000")

    def test_credit_days_upper_bound(self):
        assert parse_credit_days(3650) == 3650
        with pytest.raises(ValueError):
            parse_credit_days(999999999)

    def test_add_days_out_of_range(self):
        assert add_days(date(2025, 1, 15), 30) == date(2025, 2, 14)
        with pytest.raises(ValueError):
            add_days(date(9999, 12, 20), 30)


# ===== TESTS DE ESQUEMAS =====

class TestInvoiceSchemas:

    def test_due_date_defaults_to_credit_days(self, sample_invoice_data):
        invoice = InvoiceCreate(**sample_invoice_data)

        assert invoice.fecha_vencimiento == date(2025, 2, 14)

    def test_rfc_is_normalized(self, sample_invoice_data):
        invoice = InvoiceCreate(**{**sample_invoice_data, "rfc": "eej 990101 aaa"})

        assert invoice.rfc == "EEJ990101AAA"

    def test_short_rfc_rejected(self, sample_invoice_data):
        with pytest.raises(ValueError):
            InvoiceCreate(**{**sample_invoice_data, "rfc": "ABC123"})

    def test_negative_payment_rejected(self, sample_invoice_data):
        with pytest.raises(ValueError):
            InvoiceCreate(**{**sample_invoice_data, "pago2": "-1"})

    def test_update_rejects_null_required_field(self):
        with pytest.raises(ValueError):
            InvoiceUpdate(total=None)

    def test_update_tracks_only_sent_fields(self):
        update = InvoiceUpdate(pago2="500")

        assert update.model_dump(exclude_unset=True) == {"pago2": Decimal("500")}


# ===== TESTS DE VALIDACIÓN DE CARGA MASIVA =====

class TestBulkValidation:
    """Tests para el análisis de archivos (no usa base de datos)"""

    def test_short_rfc_row_is_rejected(self):
        content = _xlsx([
            VALID_ROW,
            ["FedEx", "FAC-2025-002", "CLIENTE DEMO SC", "ABC1234567", 15, "2025-01-16", "2025-01-31", 15750.00],
            ["UPS", "FAC-2025-003", "NEGOCIO PRUEBA", "NPR990303CCC", 0, "2025-01-17", "2025-01-17", 8500.25],
        ])

        result = validate_bulk_file(content, "facturas.xlsx")

        assert result.total_lineas == 3
        assert result.lineas_correctas == 2
        assert result.lineas_con_errores == 1
        assert len(result.errores) == 1
        assert result.errores[0].fila == 3
        assert result.errores[0].campo == "rfc"
        assert result.errores[0].error == "RFC debe tener al menos 12 caracteres"
        assert [c.numero_comprobante for c in result.datos_correctos] == ["FAC-2025-001", "FAC-2025-003"]

    def test_candidates_are_reconciled(self):
        result = validate_bulk_file(_xlsx([VALID_ROW]), "facturas.xlsx")

        candidate = result.datos_correctos[0]
        assert candidate.total == Decimal("25000.50")
        assert candidate.por_cobrar == Decimal("25000.50")
        assert candidate.estatus == InvoiceStatus.PENDIENTE
        assert candidate.pago1 == Decimal("0")
        assert candidate.fecha_pago1 is None

    def test_zero_total_row_is_paid(self):
        row = VALID_ROW[:7] + [0]

        result = validate_bulk_file(_xlsx([row]), "facturas.xlsx")

        assert result.datos_correctos[0].estatus == InvoiceStatus.PAGADA

    def test_blank_first_cell_rows_are_skipped(self):
        content = _xlsx([
            VALID_ROW,
            ["   ", "FAC-X", "CLIENTE", "EEJ990101AAA", 0, "2025-01-15", None, 100],
            [None, "FAC-Y", "CLIENTE", "EEJ990101AAA", 0, "2025-01-15", None, 100],
        ])

        result = validate_bulk_file(content, "facturas.xlsx")

        assert result.total_lineas == 1
        assert result.lineas_correctas == 1
        assert result.errores == []
        assert result.datos_con_errores == []

    def test_errors_follow_field_order(self):
        content = _xlsx([["DHL", "", None, "", None, None, None, ""]])

        result = validate_bulk_file(content, "facturas.xlsx")

        assert [e.campo for e in result.errores] == [
            "numero_comprobante", "cliente", "rfc", "total", "fecha_creacion"
        ]
        assert all(e.fila == 2 and e.severidad == "error" for e in result.errores)
        assert result.lineas_con_errores == 1
        assert result.datos_con_errores[0][0] == "DHL"

    def test_invalid_total_and_date_messages(self):
        content = _xlsx([
            ["DHL", "FAC-1", "CLIENTE", "EEJ990101AAA", 0, "2025-01-15", None, "mil pesos"],
            ["DHL", "FAC-2", "CLIENTE", "EEJ990101AAA", 0, "ayer", None, -10],
        ])

        result = validate_bulk_file(content, "facturas.xlsx")

        messages = [(e.fila, e.campo, e.error) for e in result.errores]
        assert (2, "total", "Total debe ser un número válido") in messages
        assert (3, "total", "Total debe ser un número positivo") in messages
        assert any(fila == 3 and campo == "fecha_creacion" for fila, campo, _ in messages)
        assert result.lineas_correctas == 0

    def test_warnings_do_not_block_row(self):
        content = _xlsx([
            ["DHL", "FAC-1", "CLIENTE", "EEJ990101AAA", "treinta", "2025-01-15", "no es fecha", 100],
        ])

        result = validate_bulk_file(content, "facturas.xlsx")

        assert result.lineas_correctas == 1
        assert result.lineas_con_errores == 0
        assert result.lineas_con_advertencias == 1
        assert {e.campo for e in result.errores} == {"credito", "fecha_vencimiento"}
        assert all(e.severidad == "warning" for e in result.errores)
        candidate = result.datos_correctos[0]
        assert candidate.credito == 0
        assert candidate.fecha_vencimiento == date(2025, 1, 15)

    def test_blank_due_date_defaults_silently(self):
        row = VALID_ROW[:6] + [None, 100]

        result = validate_bulk_file(_xlsx([row]), "facturas.xlsx")

        assert result.errores == []
        assert result.datos_correctos[0].fecha_vencimiento == date(2025, 2, 14)

    def test_excel_dates_and_serials(self):
        content = _xlsx([
            ["DHL", "FAC-1", "CLIENTE", "EEJ990101AAA", 0, datetime(2025, 1, 15), 45672, "$1,200.00"],
        ])

        result = validate_bulk_file(content, "facturas.xlsx")

        candidate = result.datos_correctos[0]
        assert candidate.fecha_creacion == date(2025, 1, 15)
        assert candidate.fecha_vencimiento == date(2025, 1, 15)
        assert candidate.total == Decimal("1200.00")

    def test_numeric_invoice_number_becomes_text(self):
        content = _xlsx([["DHL", 1001, "CLIENTE", "EEJ990101AAA", 0, "2025-01-15", None, 100]])

        result = validate_bulk_file(content, "facturas.xlsx")

        assert result.datos_correctos[0].numero_comprobante == "1001"

    def test_corrupt_file(self):
        result = validate_bulk_file(b"esto no es un excel", "facturas.xlsx")

        assert result.total_lineas == 0
        assert result.lineas_correctas == 0
        assert result.lineas_con_errores == 0
        assert len(result.errores) == 1
        assert result.errores[0].campo == "archivo"
        assert result.errores[0].fila == 1
        assert result.errores[0].severidad == "error"

    def test_csv_file(self):
        content = (
            "paqueteria,numero_comprobante,cliente,rfc,credito,fecha_creacion,fecha_vencimiento,total\n"
            'DHL,FAC-1,EMPRESA EJEMPLO SA,EEJ990101AAA,30,15/01/2025,,"25,000.50"\n'
        ).encode("utf-8")

        result = validate_bulk_file(content, "facturas.csv")

        assert result.lineas_correctas == 1
        assert result.datos_correctos[0].total == Decimal("25000.50")
        assert result.datos_correctos[0].fecha_vencimiento == date(2025, 2, 14)

    def test_layout_examples_validate_cleanly(self):
        result = validate_bulk_file(build_layout_workbook(), "Layout_Facturacion.xlsx")

        assert result.total_lineas == 3
        assert result.lineas_correctas == 3
        assert result.errores == []

    def test_partition_invariant(self):
        content = _xlsx([
            VALID_ROW,
            ["DHL", "", "CLIENTE", "EEJ990101AAA", 0, "2025-01-15", None, 100],
            ["DHL", "FAC-3", "CLIENTE", "EEJ990101AAA", "x", "2025-01-15", None, 100],
            ["DHL", "FAC-4", "CLIENTE", "CORTO", 0, "2025-01-15", None, 100],
        ])

        result = validate_bulk_file(content, "facturas.xlsx")

        assert result.lineas_correctas + result.lineas_con_errores == result.total_lineas
        error_rows = {e.fila for e in result.errores if e.severidad == "error"}
        assert error_rows == {3, 5}
        assert len(result.datos_correctos) == result.lineas_correctas == 2
        assert [c.numero_comprobante for c in result.datos_correctos] == ["FAC-2025-001", "FAC-3"]
        assert result.lineas_con_advertencias == 1

    def test_huge_credit_days_is_a_warning(self):
        row = VALID_ROW[:4] + [999999999, "2025-01-15", None, 100]

        result = validate_bulk_file(_xlsx([row]), "facturas.xlsx")

        assert result.total_lineas == 1
        assert result.lineas_correctas == 1
        assert [(e.campo, e.severidad) for e in result.errores] == [("credito", "warning")]
        assert result.datos_correctos[0].credito == 0
        assert result.datos_correctos[0].fecha_vencimiento == date(2025, 1, 15)

    def test_huge_serial_dates(self):
        content = _xlsx([
            ["DHL", "FAC-1", "CLIENTE", "EEJ990101AAA", 0, 5000000, None, 100],
            ["DHL", "FAC-2", "CLIENTE", "EEJ990101AAA", 0, "2025-01-15", 5000000, 100],
        ])

        result = validate_bulk_file(content, "facturas.xlsx")

        assert result.total_lineas == 2
        assert result.lineas_con_errores == 1
        assert result.lineas_correctas == 1
        assert [(e.fila, e.campo, e.severidad) for e in result.errores] == [
            (2, "fecha_creacion", "error"),
            (3, "fecha_vencimiento", "warning"),
        ]

    def test_due_date_past_calendar_end(self):
        row = ["DHL", "FAC-1", "CLIENTE", "EEJ990101AAA", 30, "20/12/9999", None, 100]

        result = validate_bulk_file(_xlsx([row]), "facturas.xlsx")

        assert result.lineas_con_errores == 1
        assert result.errores[0].campo == "fecha_vencimiento"
        assert result.errores[0].severidad == "error"

    @pytest.mark.parametrize("total", ["1e30", "10,000,000,000,000.00", 1e20])
    def test_total_out_of_range(self, total):
        row = VALID_ROW[:7] + [total]

        result = validate_bulk_file(_xlsx([row]), "facturas.xlsx")

        assert result.total_lineas == 1
        assert result.lineas_con_errores == 1
        assert result.errores[0].campo == "total"
        assert result.errores[0].error.startswith("Total excede el máximo permitido")

    def test_candidates_keep_source_row(self):
        content = _xlsx([
            VALID_ROW,
            ["   ", "FAC-X", "CLIENTE", "EEJ990101AAA", 0, "2025-01-15", None, 100],
            ["UPS", "FAC-2025-003", "NEGOCIO PRUEBA", "NPR990303CCC", 0, "2025-01-17", None, 8500.25],
        ])

        result = validate_bulk_file(content, "facturas.xlsx")

        assert [c.fila for c in result.datos_correctos] == [2, 4]

    def test_validate_row_is_total(self):
        outcome = validate_row(RawRow(fila=7, cells=("DHL",)))

        assert outcome.candidate is None
        assert outcome.has_errors
        assert all(issue.fila == 7 for issue in outcome.issues)


# ===== TESTS DE SERVICIOS =====

class TestInvoiceService:
    """Tests para InvoiceService"""

    def test_create_invoice_reconciles(self, db_session: Session, sample_invoice_data):
        service = InvoiceService(db_session)

        invoice = service.create_invoice(InvoiceCreate(**sample_invoice_data))

        assert invoice.id is not None
        assert invoice.por_cobrar == Decimal("15000.50")
        assert invoice.estatus == InvoiceStatus.PENDIENTE
        assert invoice.fecha_vencimiento == date(2025, 2, 14)

    def test_create_invoice_duplicate(self, db_session: Session, sample_invoice_data):
        service = InvoiceService(db_session)
        service.create_invoice(InvoiceCreate(**sample_invoice_data))

        with pytest.raises(HTTPException) as exc_info:
            service.create_invoice(InvoiceCreate(**sample_invoice_data))

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Ya existe una factura con ese número de comprobante"

    def test_create_invoice_emits_notification(self, db_session: Session, sample_invoice_data):
        InvoiceService(db_session).create_invoice(InvoiceCreate(**sample_invoice_data))

        notifications = db_session.query(Notification).all()
        assert len(notifications) == 1
        assert notifications[0].title == "Nueva Factura Creada"
        assert notifications[0].type == NotificationType.SUCCESS
        assert "FAC-2025-001" in notifications[0].message

    def test_update_recomputes_status(self, db_session: Session, sample_invoice_data):
        service = InvoiceService(db_session)
        invoice = service.create_invoice(InvoiceCreate(**sample_invoice_data))

        updated = service.update_invoice(invoice.id, InvoiceUpdate(pago2="15000.50", fecha_pago2="2025-02-01"))

        assert updated.por_cobrar == Decimal("0")
        assert updated.estatus == InvoiceStatus.PAGADA
        assert updated.pago1 == Decimal("10000")

    def test_downward_total_edit_clamps_balance(self, db_session: Session, sample_invoice_data):
        service = InvoiceService(db_session)
        invoice = service.create_invoice(InvoiceCreate(**sample_invoice_data))

        updated = service.update_invoice(invoice.id, InvoiceUpdate(total="5000"))

        assert updated.por_cobrar == Decimal("0")
        assert updated.estatus == InvoiceStatus.PAGADA

    def test_update_unknown_invoice(self, db_session: Session):
        with pytest.raises(HTTPException) as exc_info:
            InvoiceService(db_session).update_invoice(uuid4(), InvoiceUpdate(pago1="1"))

        assert exc_info.value.status_code == 404

    def test_update_to_existing_number(self, db_session: Session, sample_invoice_data):
        service = InvoiceService(db_session)
        service.create_invoice(InvoiceCreate(**sample_invoice_data))
        other = service.create_invoice(InvoiceCreate(**_invoice_payload("FAC-2025-002")))

        with pytest.raises(HTTPException) as exc_info:
            service.update_invoice(other.id, InvoiceUpdate(numero_comprobante="FAC-2025-001"))

        assert exc_info.value.status_code == 400

    def test_get_invoices_with_filters(self, db_session: Session):
        service = InvoiceService(db_session)
        service.create_invoice(InvoiceCreate(**_invoice_payload("FAC-1", cliente="Abarrotes Lupita")))
        service.create_invoice(InvoiceCreate(**_invoice_payload("FAC-2", cliente="Ferretería Norte")))
        service.create_invoice(InvoiceCreate(**_invoice_payload("FAC-3", cliente="ABARROTES DEL SUR", pago1="15750.00")))

        by_client = service.get_invoices(InvoiceFilters(cliente="abarrotes"))
        assert {i.numero_comprobante for i in by_client} == {"FAC-1", "FAC-3"}

        paid = service.get_invoices(InvoiceFilters(estatus=InvoiceStatus.PAGADA))
        assert [i.numero_comprobante for i in paid] == ["FAC-3"]

        newest_first = service.get_invoices(InvoiceFilters())
        assert [i.numero_comprobante for i in newest_first] == ["FAC-3", "FAC-2", "FAC-1"]

        page = service.get_invoices(InvoiceFilters(), limit=1, offset=1)
        assert [i.numero_comprobante for i in page] == ["FAC-2"]

    def test_get_overdue_invoices(self, db_session: Session):
        service = InvoiceService(db_session)
        today = date(2025, 3, 1)
        service.create_invoice(InvoiceCreate(**_invoice_payload("VENCIDA", fecha_vencimiento="2025-02-01")))
        service.create_invoice(InvoiceCreate(**_invoice_payload("MAS-VENCIDA", fecha_vencimiento="2025-01-20")))
        service.create_invoice(InvoiceCreate(**_invoice_payload("PAGADA", fecha_vencimiento="2025-02-01", pago1="15750.00")))
        service.create_invoice(InvoiceCreate(**_invoice_payload("AL-DIA", fecha_vencimiento="2025-03-15")))

        overdue = service.get_overdue_invoices(today=today)

        assert [i.numero_comprobante for i in overdue] == ["MAS-VENCIDA", "VENCIDA"]

    def test_delete_invoice(self, db_session: Session, sample_invoice_data):
        service = InvoiceService(db_session)
        invoice = service.create_invoice(InvoiceCreate(**sample_invoice_data))

        service.delete_invoice(invoice.id)

        assert db_session.query(Invoice).count() == 0
        with pytest.raises(HTTPException) as exc_info:
            service.delete_invoice(invoice.id)
        assert exc_info.value.status_code == 404


class TestBulkCommit:
    """Tests para la confirmación de carga masiva"""

    def test_duplicate_against_existing_invoice(self, db_session: Session, sample_invoice_data):
        service = InvoiceService(db_session)
        service.create_invoice(InvoiceCreate(**sample_invoice_data))
        candidates = [
            InvoiceCandidate(**_invoice_payload("FAC-2025-001")),
            InvoiceCandidate(**_invoice_payload("FAC-2025-002")),
        ]

        response = service.commit_bulk_invoices(candidates)

        assert response.created == 1
        assert response.errors == 1
        assert response.error_details == ["Fila 1: Número de comprobante FAC-2025-001 ya existe"]
        assert response.message == "Carga masiva completada: 1 facturas creadas, 1 errores"
        assert db_session.query(Invoice).count() == 2

    def test_errors_report_source_row(self, db_session: Session):
        candidates = [
            InvoiceCandidate(**_invoice_payload("FAC-30"), fila=2),
            InvoiceCandidate(**_invoice_payload("FAC-30"), fila=5),
        ]

        response = InvoiceService(db_session).commit_bulk_invoices(candidates)

        assert response.error_details == ["Fila 5: Número de comprobante FAC-30 ya existe"]

    def test_duplicate_within_same_batch(self, db_session: Session):
        candidates = [
            InvoiceCandidate(**_invoice_payload("FAC-10")),
            InvoiceCandidate(**_invoice_payload("FAC-10")),
            InvoiceCandidate(**_invoice_payload("FAC-11")),
        ]

        response = InvoiceService(db_session).commit_bulk_invoices(candidates)

        assert response.created == 2
        assert response.errors == 1
        assert response.error_details == ["Fila 2: Número de comprobante FAC-10 ya existe"]
        assert response.created + response.errors == len(candidates)

    def test_client_balance_is_recomputed(self, db_session: Session):
        candidate = InvoiceCandidate(
            **_invoice_payload("FAC-20", pago1="15750.00"),
            por_cobrar=Decimal("999"),
            estatus=InvoiceStatus.PENDIENTE,
        )

        InvoiceService(db_session).commit_bulk_invoices([candidate])

        invoice = db_session.query(Invoice).filter(Invoice.numero_comprobante == "FAC-20").one()
        assert invoice.por_cobrar == Decimal("0")
        assert invoice.estatus == InvoiceStatus.PAGADA

    def test_single_summary_notification(self, db_session: Session):
        candidates = [InvoiceCandidate(**_invoice_payload(f"FAC-{n}")) for n in range(3)]

        InvoiceService(db_session).commit_bulk_invoices(candidates)

        notifications = db_session.query(Notification).all()
        assert len(notifications) == 1
        assert notifications[0].title == "Carga Masiva Completada"
        assert notifications[0].type == NotificationType.SUCCESS
        assert notifications[0].message == "3 facturas creadas exitosamente"

    def test_summary_notification_warns_on_errors(self, db_session: Session):
        candidates = [InvoiceCandidate(**_invoice_payload("FAC-1")), InvoiceCandidate(**_invoice_payload("FAC-1"))]

        InvoiceService(db_session).commit_bulk_invoices(candidates)

        notification = db_session.query(Notification).one()
        assert notification.type == NotificationType.WARNING
        assert notification.message == "1 facturas creadas exitosamente, 1 errores"

    def test_notification_failure_keeps_summary(self, db_session: Session, monkeypatch):
        def broken_notification(self, *args, **kwargs):
            raise SQLAlchemyError("notifications table unavailable")

        monkeypatch.setattr(NotificationService, "create_notification", broken_notification)

        response = InvoiceService(db_session).commit_bulk_invoices([InvoiceCandidate(**_invoice_payload("FAC-1"))])

        assert response.created == 1
        assert response.errors == 0
        assert db_session.query(Invoice).count() == 1


# ===== TESTS DE API ENDPOINTS =====

@pytest.mark.usefixtures("db_session")
class TestInvoiceAPI:
    """Tests de endpoints API"""

    def test_create_invoice_endpoint(self, auth_headers, sample_invoice_data):
        response = client.post("/api/invoices", json=sample_invoice_data, headers=auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["numero_comprobante"] == "FAC-2025-001"
        assert Decimal(data["por_cobrar"]) == Decimal("15000.50")
        assert data["estatus"] == "Pendiente"
        assert data["fecha_vencimiento"] == "2025-02-14"

    def test_create_duplicate_endpoint(self, auth_headers, sample_invoice_data):
        client.post("/api/invoices", json=sample_invoice_data, headers=auth_headers)

        response = client.post("/api/invoices", json=sample_invoice_data, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Ya existe una factura con ese número de comprobante"

    @pytest.mark.parametrize("overrides", [
        {"total": "1e30"},
        {"pago1": "10000000000000"},
        {"credito": 999999999},
        {"fecha_creacion": "9999-12-20", "credito": 30},
    ])
    def test_create_out_of_range_values(self, auth_headers, overrides):
        response = client.post("/api/invoices", json=_invoice_payload("FAC-RANGO", **overrides), headers=auth_headers)

        assert response.status_code == 422

    def test_update_due_date_past_calendar_end(self, auth_headers):
        invoice_id = client.post("/api/invoices", json=_invoice_payload("FAC-1"), headers=auth_headers).json()["id"]

        response = client.put(
            f"/api/invoices/{invoice_id}",
            json={"fecha_creacion": "9999-12-20", "credito": 30, "fecha_vencimiento": None},
            headers=auth_headers,
        )

        assert response.status_code == 422
        assert client.get(f"/api/invoices/{invoice_id}", headers=auth_headers).json()["fecha_creacion"] == "2025-01-16"

    def test_create_invalid_payload(self, auth_headers, sample_invoice_data):
        response = client.post(
            "/api/invoices", json={**sample_invoice_data, "rfc": "CORTO"}, headers=auth_headers
        )

        assert response.status_code == 422

    def test_get_update_delete_endpoints(self, auth_headers, sample_invoice_data):
        invoice_id = client.post("/api/invoices", json=sample_invoice_data, headers=auth_headers).json()["id"]

        response = client.get(f"/api/invoices/{invoice_id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["id"] == invoice_id

        response = client.put(
            f"/api/invoices/{invoice_id}",
            json={"pago2": "15000.50", "fecha_pago2": "01/02/2025"},
            headers=auth_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["estatus"] == "Pagada"
        assert Decimal(data["por_cobrar"]) == Decimal("0")
        assert data["fecha_pago2"] == "2025-02-01"

        response = client.delete(f"/api/invoices/{invoice_id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == {"message": "Factura eliminada exitosamente"}

        response = client.get(f"/api/invoices/{invoice_id}", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Factura no encontrada"

    def test_list_invoices_endpoint(self, auth_headers):
        client.post("/api/invoices", json=_invoice_payload("FAC-1"), headers=auth_headers)
        client.post("/api/invoices", json=_invoice_payload("FAC-2", pago1="15750"), headers=auth_headers)

        response = client.get("/api/invoices", headers=auth_headers)
        assert response.status_code == 200
        assert [i["numero_comprobante"] for i in response.json()] == ["FAC-2", "FAC-1"]

        response = client.get("/api/invoices", params={"estatus": "Pendiente"}, headers=auth_headers)
        assert [i["numero_comprobante"] for i in response.json()] == ["FAC-1"]

    def test_overdue_endpoint(self, auth_headers):
        past = (date.today() - timedelta(days=10)).isoformat()
        future = (date.today() + timedelta(days=10)).isoformat()
        client.post("/api/invoices", json=_invoice_payload("VENCIDA", fecha_vencimiento=past), headers=auth_headers)
        client.post("/api/invoices", json=_invoice_payload("AL-DIA", fecha_vencimiento=future), headers=auth_headers)

        response = client.get("/api/invoices/overdue", headers=auth_headers)

        assert response.status_code == 200
        assert [i["numero_comprobante"] for i in response.json()] == ["VENCIDA"]

    def test_bulk_validate_then_upload(self, auth_headers):
        content = _xlsx([
            VALID_ROW,
            ["FedEx", "FAC-2025-002", "CLIENTE DEMO SC", "ABC1234567", 15, "2025-01-16", None, 15750.00],
        ])

        response = client.post(
            "/api/invoices/bulk-validate",
            files={"file": ("facturas.xlsx", content, XLSX_MEDIA_TYPE)},
            headers=auth_headers,
        )

        assert response.status_code == 200
        analysis = response.json()
        assert analysis["totalLineas"] == 2
        assert analysis["lineasCorrectas"] == 1
        assert analysis["lineasConErrores"] == 1
        assert analysis["errores"][0]["campo"] == "rfc"

        response = client.post(
            "/api/invoices/bulk-upload",
            json={"invoices": analysis["datosCorrectos"]},
            headers=auth_headers,
        )

        assert response.status_code == 200
        summary = response.json()
        assert summary["created"] == 1
        assert summary["errors"] == 0
        assert summary["errorDetails"] == []

    def test_bulk_validate_out_of_range_cells(self, auth_headers):
        content = _xlsx([
            VALID_ROW[:4] + [999999999, "2025-01-15", None, 100],
            ["DHL", "FAC-2", "CLIENTE", "EEJ990101AAA", 0, 5000000, None, 100],
            ["DHL", "FAC-3", "CLIENTE", "EEJ990101AAA", 0, "2025-01-15", None, "1e30"],
        ])

        response = client.post(
            "/api/invoices/bulk-validate",
            files={"file": ("facturas.xlsx", content, XLSX_MEDIA_TYPE)},
            headers=auth_headers,
        )

        assert response.status_code == 200
        analysis = response.json()
        assert analysis["totalLineas"] == 3
        assert analysis["lineasCorrectas"] == 1
        assert analysis["lineasConErrores"] == 2

    def test_bulk_upload_reports_file_rows(self, auth_headers):
        content = _xlsx([
            ["   ", "FAC-X", "CLIENTE", "EEJ990101AAA", 0, "2025-01-15", None, 100],
            VALID_ROW,
        ])
        analysis = client.post(
            "/api/invoices/bulk-validate",
            files={"file": ("facturas.xlsx", content, XLSX_MEDIA_TYPE)},
            headers=auth_headers,
        ).json()
        client.post("/api/invoices/bulk-upload", json={"invoices": analysis["datosCorrectos"]}, headers=auth_headers)

        response = client.post(
            "/api/invoices/bulk-upload", json={"invoices": analysis["datosCorrectos"]}, headers=auth_headers
        )

        assert response.json()["errorDetails"] == ["Fila 3: Número de comprobante FAC-2025-001 ya existe"]

    def test_bulk_upload_requires_invoices(self, auth_headers):
        response = client.post("/api/invoices/bulk-upload", json={"invoices": []}, headers=auth_headers)

        assert response.status_code == 422

    def test_bulk_validate_rejects_large_file(self, auth_headers, monkeypatch):
        monkeypatch.setattr(settings, "BULK_UPLOAD_MAX_BYTES", 10)

        response = client.post(
            "/api/invoices/bulk-validate",
            files={"file": ("facturas.xlsx", _xlsx([VALID_ROW]), XLSX_MEDIA_TYPE)},
            headers=auth_headers,
        )

        assert response.status_code == 413

    def test_layout_download(self, auth_headers):
        response = client.get("/api/invoices/layout", headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith(XLSX_MEDIA_TYPE)
        sheet = load_workbook(BytesIO(response.content)).active
        rows = list(sheet.iter_rows(values_only=True))
        assert list(rows[0]) == list(LAYOUT_COLUMNS)
        assert len(rows) == 4

    def test_export_download(self, auth_headers):
        client.post("/api/invoices", json=_invoice_payload("FAC-1"), headers=auth_headers)
        client.post("/api/invoices", json=_invoice_payload("FAC-2"), headers=auth_headers)

        response = client.get("/api/invoices/export", headers=auth_headers)

        assert response.status_code == 200
        assert "attachment" in response.headers["content-disposition"]
        sheet = load_workbook(BytesIO(response.content)).active
        assert sheet.title == "Facturas"
        assert sheet.max_row == 3
        assert sheet.cell(row=2, column=18).value == "Pendiente"


@pytest.mark.usefixtures("db_session")
class TestInvoicePermissions:
    """Tests de autenticación y permisos por rol"""

    def test_missing_token(self):
        response = client.get("/api/invoices")

        assert response.status_code == 401

    def test_invalid_token(self):
        response = client.get("/api/invoices", headers={"Authorization": "Bearer no-es-un-jwt"})

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "TOKEN_INVALID"

    def test_readonly_cannot_create(self, make_auth_headers, sample_invoice_data):
        response = client.post("/api/invoices", json=sample_invoice_data, headers=make_auth_headers("readonly"))

        assert response.status_code == 403
        detail = response.json()["detail"]
        assert detail["error"] == "Permisos insuficientes"
        assert detail["required"] == "facturacion:create"

    def test_readonly_can_list(self, make_auth_headers):
        response = client.get("/api/invoices", headers=make_auth_headers("readonly"))

        assert response.status_code == 200

    def test_employee_cannot_delete(self, make_auth_headers, auth_headers, sample_invoice_data):
        invoice_id = client.post("/api/invoices", json=sample_invoice_data, headers=auth_headers).json()["id"]

        response = client.delete(f"/api/invoices/{invoice_id}", headers=make_auth_headers("employee"))

        assert response.status_code == 403

    def test_export_requires_export_permission(self, make_auth_headers):
        assert client.get("/api/invoices/export", headers=make_auth_headers("employee")).status_code == 403
        assert client.get("/api/invoices/export", headers=make_auth_headers("manager")).status_code == 200

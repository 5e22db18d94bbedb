from fastapi import APIRouter, Depends, status, Query, HTTPException, File, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from app.core.config import settings
from app.database.database import get_db
from app.modules.auth.dependencies import AuthDependencies
from app.modules.invoices.importer import validate_bulk_file
from app.modules.invoices.models import InvoiceStatus
from app.modules.invoices.service import InvoiceService
from app.modules.invoices.schemas import (
    InvoiceCreate, InvoiceUpdate, InvoiceOut, InvoiceFilters, MessageResponse,
    BulkValidationResult, BulkUploadRequest, BulkUploadResponse
)
from app.modules.invoices.workbooks import (
    build_layout_workbook, build_export_workbook, export_filename, XLSX_MEDIA_TYPE
)

# Router principal del módulo de facturación
router = APIRouter(prefix="/invoices", tags=["Facturación"])


def _xlsx_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@router.get("", response_model=List[InvoiceOut])
def list_invoices(
    estatus: Optional[InvoiceStatus] = Query(None, description="Pendiente o Pagada"),
    cliente: Optional[str] = Query(None, description="Buscar por nombre de cliente"),
    numero_comprobante: Optional[str] = Query(None, description="Buscar por número de comprobante"),
    limit: Optional[int] = Query(None, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    principal=Depends(AuthDependencies.require_permission("facturacion", "read"))
):
    """
    Listar facturas, más recientes primero.

    Filtros por estatus y coincidencia parcial de cliente o número de comprobante.
    """
    service = InvoiceService(db)
    filters = InvoiceFilters(estatus=estatus, cliente=cliente, numero_comprobante=numero_comprobante)
    return service.get_invoices(filters, limit, offset)


@router.post("", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def create_invoice(
    invoice_data: InvoiceCreate,
    db: Session = Depends(get_db),
    principal=Depends(AuthDependencies.require_permission("facturacion", "create"))
):
    """
    Crear una nueva factura

    por_cobrar y estatus se calculan a partir del total, los pagos y la nota de crédito.
    """
    service = InvoiceService(db)
    return service.create_invoice(invoice_data)


@router.get("/overdue", response_model=List[InvoiceOut])
def list_overdue_invoices(
    db: Session = Depends(get_db),
    principal=Depends(AuthDependencies.require_permission("facturacion", "read"))
):
    """
    Facturas pendientes con fecha de vencimiento anterior a hoy
    """
    service = InvoiceService(db)
    return service.get_overdue_invoices()


# --- CARGA MASIVA ---

@router.get("/layout")
def download_layout(
    principal=Depends(AuthDependencies.require_permission("facturacion", "read"))
):
    """
    Descargar el layout (xlsx) para la carga masiva
    """
    return _xlsx_response(build_layout_workbook(), "Layout_Facturacion.xlsx")


@router.post("/bulk-validate", response_model=BulkValidationResult)
async def validate_bulk_upload(
    file: UploadFile = File(..., description="Archivo xlsx o csv con el layout de facturación"),
    principal=Depends(AuthDependencies.require_permission("facturacion", "create"))
):
    """
    Analizar un archivo de carga masiva sin guardar nada.

    Devuelve conteos de líneas correctas / con errores / con advertencias,
    el detalle por celda y las facturas listas para confirmar.
    """
    content = await file.read()
    if len(content) > settings.BULK_UPLOAD_MAX_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"El archivo es demasiado grande (máximo {settings.BULK_UPLOAD_MAX_BYTES // (1024 * 1024)}MB)"
        )
    return validate_bulk_file(content, file.filename)


@router.post("/bulk-upload", response_model=BulkUploadResponse)
def confirm_bulk_upload(
    upload: BulkUploadRequest,
    db: Session = Depends(get_db),
    principal=Depends(AuthDependencies.require_permission("facturacion", "create"))
):
    """
    Confirmar la carga masiva de las facturas aprobadas.

    Cada fila se procesa por separado: los números de comprobante repetidos
    se reportan como error y el resto del lote continúa.
    """
    service = InvoiceService(db)
    return service.commit_bulk_invoices(upload.invoices)


@router.get("/export")
def export_invoices(
    estatus: Optional[InvoiceStatus] = Query(None),
    cliente: Optional[str] = Query(None),
    numero_comprobante: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    principal=Depends(AuthDependencies.require_permission("facturacion", "export"))
):
    """
    Exportar a Excel las facturas que cumplen los filtros
    """
    service = InvoiceService(db)
    filters = InvoiceFilters(estatus=estatus, cliente=cliente, numero_comprobante=numero_comprobante)
    invoices = service.get_invoices(filters)
    return _xlsx_response(build_export_workbook(invoices), export_filename())


# --- POR ID ---

@router.get("/{invoice_id}", response_model=InvoiceOut)
def get_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    principal=Depends(AuthDependencies.require_permission("facturacion", "read"))
):
    """
    Obtener una factura
    """
    service = InvoiceService(db)
    return service.get_invoice_by_id(invoice_id)


@router.put("/{invoice_id}", response_model=InvoiceOut)
def update_invoice(
    invoice_id: UUID,
    invoice_update: InvoiceUpdate,
    db: Session = Depends(get_db),
    principal=Depends(AuthDependencies.require_permission("facturacion", "update"))
):
    """
    Actualizar una factura

    Solo se modifican los campos enviados. Cualquier cambio en total, pagos o
    nota de crédito recalcula por_cobrar y estatus.
    """
    service = InvoiceService(db)
    return service.update_invoice(invoice_id, invoice_update)


@router.delete("/{invoice_id}", response_model=MessageResponse)
def delete_invoice(
    invoice_id: UUID,
    db: Session = Depends(get_db),
    principal=Depends(AuthDependencies.require_permission("facturacion", "delete"))
):
    """
    Eliminar una factura
    """
    service = InvoiceService(db)
    service.delete_invoice(invoice_id)
    return {"message": "Factura eliminada exitosamente"}

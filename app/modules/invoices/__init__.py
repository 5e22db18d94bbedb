"""
Módulo de Facturación (Invoices) - Shope Envíos CRM

Cuentas por cobrar de las facturas emitidas a clientes de paquetería:

- Alta, edición, consulta y baja de facturas
- Conciliación del saldo (por_cobrar / estatus) con hasta tres pagos y nota de crédito
- Carga masiva desde Excel en dos pasos: validar el archivo y confirmar
- Layout descargable y exportación a Excel
- Listado de facturas vencidas

Permisos: facturacion:create / read / update / delete / export

Tablas principales:
- invoices: Facturas por cobrar
"""

from .models import Invoice, InvoiceStatus
from .schemas import InvoiceCreate, InvoiceUpdate, InvoiceOut, BulkValidationResult, BulkUploadResponse
from .service import InvoiceService
from .router import router

__all__ = [
    "Invoice", "InvoiceStatus",
    "InvoiceCreate", "InvoiceUpdate", "InvoiceOut",
    "BulkValidationResult", "BulkUploadResponse",
    "InvoiceService",
    "router"
]

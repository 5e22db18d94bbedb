from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from decimal import Decimal
from typing import Optional, List, Any, Literal
from uuid import UUID
from datetime import date, datetime

from app.common.validators import (
    normalize_date_string, parse_money, normalize_rfc, add_days, MAX_AMOUNT, MAX_CREDIT_DAYS
)
from app.modules.invoices.models import InvoiceStatus

MONEY_FIELDS = ("total", "pago1", "pago2", "pago3", "nc")
DATE_FIELDS = ("fecha_creacion", "fecha_vencimiento", "fecha_pago1", "fecha_pago2", "fecha_pago3")
TEXT_FIELDS = ("paqueteria", "numero_comprobante", "cliente", "comentarios", "cfdi", "soporte")


class InvoiceFieldsNormalizer(BaseModel):
    """Normalización común de los campos capturados (alta, edición y carga masiva)"""

    @field_validator(*MONEY_FIELDS, mode="before", check_fields=False)
    @classmethod
    def parse_amounts(cls, v):
        if v is None:
            return v
        return parse_money(v)

    @field_validator(*DATE_FIELDS, mode="before", check_fields=False)
    @classmethod
    def parse_dates(cls, v):
        if v is None:
            return v
        return normalize_date_string(v)

    @field_validator(*TEXT_FIELDS, mode="before", check_fields=False)
    @classmethod
    def strip_texts(cls, v):
        if isinstance(v, str):
            return v.strip()
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            # Celdas de Excel numéricas (ej. número de comprobante 1001)
            return str(v)
        return v

    @field_validator("rfc", mode="before", check_fields=False)
    @classmethod
    def clean_rfc(cls, v):
        if isinstance(v, str):
            return normalize_rfc(v)
        return v


# Invoice Schemas
class InvoiceBase(InvoiceFieldsNormalizer):
    paqueteria: str = Field(..., min_length=1, max_length=100, description="Paquetería")
    numero_comprobante: str = Field(..., min_length=1, max_length=100)
    cliente: str = Field(..., min_length=1, max_length=200)
    rfc: str = Field(..., min_length=12, max_length=13, description="RFC de 12 o 13 caracteres")
    credito: int = Field(0, ge=0, le=MAX_CREDIT_DAYS, description="Días de crédito")
    fecha_creacion: date
    fecha_vencimiento: Optional[date] = None
    total: Decimal = Field(..., ge=0, le=MAX_AMOUNT, description="Total de la factura")
    pago1: Decimal = Field(Decimal("0"), ge=0, le=MAX_AMOUNT)
    fecha_pago1: Optional[date] = None
    pago2: Decimal = Field(Decimal("0"), ge=0, le=MAX_AMOUNT)
    fecha_pago2: Optional[date] = None
    pago3: Decimal = Field(Decimal("0"), ge=0, le=MAX_AMOUNT)
    fecha_pago3: Optional[date] = None
    nc: Decimal = Field(Decimal("0"), ge=0, le=MAX_AMOUNT, description="Monto de nota de crédito")
    comentarios: Optional[str] = None
    cfdi: Optional[str] = Field(None, max_length=255)
    soporte: Optional[str] = Field(None, max_length=255)

    @field_validator("credito", mode="before")
    @classmethod
    def default_credito(cls, v):
        if v is None or v == "":
            return 0
        return v

    @model_validator(mode="after")
    def default_fecha_vencimiento(self):
        if self.fecha_vencimiento is None:
            self.fecha_vencimiento = add_days(self.fecha_creacion, self.credito)
        return self


class InvoiceCreate(InvoiceBase):
    """Alta individual. por_cobrar y estatus siempre se recalculan en el servidor."""
    pass


class InvoiceCandidate(InvoiceCreate):
    """Factura lista para la carga masiva, ya conciliada"""
    fila: Optional[int] = Field(None, ge=1, description="Fila de origen en el archivo validado")
    por_cobrar: Optional[Decimal] = None
    estatus: Optional[InvoiceStatus] = None


class InvoiceUpdate(InvoiceFieldsNormalizer):
    paqueteria: Optional[str] = Field(None, min_length=1, max_length=100)
    numero_comprobante: Optional[str] = Field(None, min_length=1, max_length=100)
    cliente: Optional[str] = Field(None, min_length=1, max_length=200)
    rfc: Optional[str] = Field(None, min_length=12, max_length=13)
    credito: Optional[int] = Field(None, ge=0, le=MAX_CREDIT_DAYS)
    fecha_creacion: Optional[date] = None
    fecha_vencimiento: Optional[date] = None
    total: Optional[Decimal] = Field(None, ge=0, le=MAX_AMOUNT)
    pago1: Optional[Decimal] = Field(None, ge=0, le=MAX_AMOUNT)
    fecha_pago1: Optional[date] = None
    pago2: Optional[Decimal] = Field(None, ge=0, le=MAX_AMOUNT)
    fecha_pago2: Optional[date] = None
    pago3: Optional[Decimal] = Field(None, ge=0, le=MAX_AMOUNT)
    fecha_pago3: Optional[date] = None
    nc: Optional[Decimal] = Field(None, ge=0, le=MAX_AMOUNT)
    comentarios: Optional[str] = None
    cfdi: Optional[str] = Field(None, max_length=255)
    soporte: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="after")
    def required_fields_not_null(self):
        # Campos obligatorios del modelo: se pueden omitir, no enviar en null
        for name in ("paqueteria", "numero_comprobante", "cliente", "rfc", "fecha_creacion", "total"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"El campo {name} no puede ser nulo")
        return self


class InvoiceOut(BaseModel):
    id: UUID
    paqueteria: str
    numero_comprobante: str
    cliente: str
    rfc: str
    credito: int
    fecha_creacion: date
    fecha_vencimiento: Optional[date]
    total: Decimal
    pago1: Decimal
    fecha_pago1: Optional[date]
    pago2: Decimal
    fecha_pago2: Optional[date]
    pago3: Decimal
    fecha_pago3: Optional[date]
    nc: Decimal
    por_cobrar: Decimal
    estatus: InvoiceStatus
    comentarios: Optional[str]
    cfdi: Optional[str]
    soporte: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# Search y Filter Schemas
class InvoiceFilters(BaseModel):
    """Filtros para búsqueda de facturas"""
    estatus: Optional[InvoiceStatus] = None
    cliente: Optional[str] = Field(None, description="Coincidencia parcial en el nombre del cliente")
    numero_comprobante: Optional[str] = Field(None, description="Coincidencia parcial en el número de comprobante")


class MessageResponse(BaseModel):
    message: str


# ===== Carga masiva =====

class BulkValidationIssue(BaseModel):
    """Un problema detectado en una celda del archivo"""
    fila: int = Field(..., description="Número de fila en el archivo (1 = encabezado)")
    campo: str
    valor: Any = None
    error: str
    severidad: Literal["error", "warning"] = "error"


class BulkValidationResult(BaseModel):
    """Resultado del análisis de un archivo de carga masiva (no se persiste)"""
    model_config = ConfigDict(populate_by_name=True)

    total_lineas: int = Field(0, alias="totalLineas")
    lineas_correctas: int = Field(0, alias="lineasCorrectas")
    lineas_con_errores: int = Field(0, alias="lineasConErrores")
    lineas_con_advertencias: int = Field(0, alias="lineasConAdvertencias")
    errores: List[BulkValidationIssue] = Field(default_factory=list)
    datos_correctos: List[InvoiceCandidate] = Field(default_factory=list, alias="datosCorrectos")
    datos_con_errores: List[List[Any]] = Field(default_factory=list, alias="datosConErrores")


class BulkUploadRequest(BaseModel):
    invoices: List[InvoiceCandidate] = Field(..., min_length=1, description="Al menos una factura es requerida")


class BulkUploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    created: int
    errors: int
    error_details: List[str] = Field(default_factory=list, alias="errorDetails")

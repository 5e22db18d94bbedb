from app.database.database import Base
from sqlalchemy import Column, Integer, String, Date, Text, Numeric, Enum, UniqueConstraint, Index
from app.common.mixins import UUIDPrimaryKeyMixin, TimestampMixin
import enum


class InvoiceStatus(str, enum.Enum):
    PENDIENTE = "Pendiente"  # Con saldo por cobrar
    PAGADA = "Pagada"        # Saldo liquidado con pagos y/o nota de crédito


class Invoice(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "invoices"

    # Identidad de negocio (asignada por el usuario)
    numero_comprobante = Column(String(100), nullable=False)

    # Datos generales
    paqueteria = Column(String(100), nullable=False)
    cliente = Column(String(200), nullable=False)
    rfc = Column(String(13), nullable=False)
    credito = Column(Integer, nullable=False, default=0)  # Días de crédito

    # Fechas
    fecha_creacion = Column(Date, nullable=False)
    fecha_vencimiento = Column(Date, nullable=True)

    # Importes
    total = Column(Numeric(15, 2), nullable=False, default=0)
    pago1 = Column(Numeric(15, 2), nullable=False, default=0)
    fecha_pago1 = Column(Date, nullable=True)
    pago2 = Column(Numeric(15, 2), nullable=False, default=0)
    fecha_pago2 = Column(Date, nullable=True)
    pago3 = Column(Numeric(15, 2), nullable=False, default=0)
    fecha_pago3 = Column(Date, nullable=True)
    nc = Column(Numeric(15, 2), nullable=False, default=0)  # Nota de crédito aplicada

    # Derivados (ver invoices.ledger)
    por_cobrar = Column(Numeric(15, 2), nullable=False, default=0)
    estatus = Column(
        Enum(
            InvoiceStatus,
            name="invoice_estatus",
            values_callable=lambda members: [m.value for m in members],
        ),
        nullable=False,
        default=InvoiceStatus.PENDIENTE,
    )

    # Referencias
    comentarios = Column(Text, nullable=True)
    cfdi = Column(String(255), nullable=True)
    soporte = Column(String(255), nullable=True)

    __table_args__ = (
        UniqueConstraint("numero_comprobante", name="uq_invoice_numero_comprobante"),
        Index("idx_invoices_estatus_vencimiento", "estatus", "fecha_vencimiento"),
    )

    def __repr__(self):
        return f"<Invoice {self.numero_comprobante} {self.estatus} por_cobrar={self.por_cobrar}>"

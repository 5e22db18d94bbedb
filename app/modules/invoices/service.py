from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy import desc, asc
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
from uuid import UUID
from datetime import date, datetime, timezone
import logging

from app.common.validators import add_days
from app.modules.invoices.models import Invoice, InvoiceStatus
from app.modules.invoices.ledger import apply_ledger, to_money
from app.modules.invoices.schemas import (
    InvoiceCreate, InvoiceCandidate, InvoiceUpdate, InvoiceFilters, BulkUploadResponse
)
from app.modules.notifications.models import NotificationType
from app.modules.notifications.service import NotificationService

logger = logging.getLogger(__name__)

DUPLICATE_DETAIL = "Ya existe una factura con ese número de comprobante"
NOT_FOUND_DETAIL = "Factura no encontrada"

# Campos del candidato que no son columnas capturadas
DERIVED_FIELDS = {"por_cobrar", "estatus", "fila"}


@dataclass
class BulkCommitOutcome:
    """Acumulador de la carga masiva: cada fila termina en exactamente una de las dos listas"""
    succeeded: List[Invoice] = field(default_factory=list)
    failed: List[Tuple[int, str, str]] = field(default_factory=list)  # (fila, numero_comprobante, motivo)

    @property
    def created(self) -> int:
        return len(self.succeeded)

    @property
    def errors(self) -> int:
        return len(self.failed)

    def fail(self, fila: int, numero_comprobante: str, motivo: str):
        self.failed.append((fila, numero_comprobante, motivo))

    def error_details(self) -> List[str]:
        return [f"Fila {fila}: {motivo}" for fila, _, motivo in self.failed]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _format_amount(amount) -> str:
    return f"${to_money(amount):,.2f}"


class InvoiceService:
    def __init__(self, db: Session):
        self.db = db

    # --- Helpers ---

    def _find_by_numero(self, numero_comprobante: str, exclude_id: Optional[UUID] = None) -> Optional[Invoice]:
        query = self.db.query(Invoice).filter(Invoice.numero_comprobante == numero_comprobante)
        if exclude_id is not None:
            query = query.filter(Invoice.id != exclude_id)
        return query.first()

    def _build_invoice(self, invoice_data: InvoiceCreate) -> Invoice:
        """Nueva instancia (sin agregar a la sesión) con saldo conciliado y timestamps"""
        now = _utcnow()
        invoice = Invoice(
            **invoice_data.model_dump(exclude=DERIVED_FIELDS),
            created_at=now,
            updated_at=now,
        )
        apply_ledger(invoice)
        return invoice

    def _notify(self, title: str, message: str, type: NotificationType):
        """La notificación no debe revertir una operación ya confirmada"""
        try:
            NotificationService(self.db).create_notification(title, message, type)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error creating notification '{title}': {e}", exc_info=True)

    # --- CRUD ---

    def create_invoice(self, invoice_data: InvoiceCreate) -> Invoice:
        """Crear nueva factura"""
        try:
            if self._find_by_numero(invoice_data.numero_comprobante):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=DUPLICATE_DETAIL
                )

            invoice = self._build_invoice(invoice_data)
            self.db.add(invoice)
            self.db.commit()
            self.db.refresh(invoice)

            logger.info(
                f"Created invoice {invoice.numero_comprobante}: total={invoice.total} "
                f"por_cobrar={invoice.por_cobrar} estatus={invoice.estatus.value}"
            )

        except HTTPException:
            raise
        except IntegrityError:
            # Alta concurrente con el mismo número de comprobante
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=DUPLICATE_DETAIL
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error creating invoice {invoice_data.numero_comprobante}: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error al crear factura"
            )

        self._notify(
            "Nueva Factura Creada",
            f"Factura {invoice.numero_comprobante} creada para {invoice.cliente} por "
            f"{_format_amount(invoice.total)} - Estado: {invoice.estatus.value}",
            NotificationType.SUCCESS,
        )
        return invoice

    def get_invoice_by_id(self, invoice_id: UUID) -> Invoice:
        """Obtener factura por ID"""
        invoice = self.db.query(Invoice).filter(Invoice.id == invoice_id).first()

        if not invoice:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=NOT_FOUND_DETAIL
            )

        return invoice

    def update_invoice(self, invoice_id: UUID, invoice_update: InvoiceUpdate) -> Invoice:
        """
        Actualizar factura. Solo cambian los campos enviados; por_cobrar y
        estatus se recalculan siempre.
        """
        try:
            invoice = self.get_invoice_by_id(invoice_id)
            changes = invoice_update.model_dump(exclude_unset=True)

            new_numero = changes.get("numero_comprobante")
            if new_numero and new_numero != invoice.numero_comprobante:
                if self._find_by_numero(new_numero, exclude_id=invoice.id):
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail=DUPLICATE_DETAIL
                    )

            for name, value in changes.items():
                setattr(invoice, name, value)

            if invoice.fecha_vencimiento is None:
                try:
                    invoice.fecha_vencimiento = add_days(invoice.fecha_creacion, invoice.credito or 0)
                except ValueError as e:
                    self.db.rollback()
                    raise HTTPException(
                        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                        detail=str(e)
                    )

            old_status = invoice.estatus
            apply_ledger(invoice)
            invoice.updated_at = _utcnow()

            self.db.commit()
            self.db.refresh(invoice)

            if old_status != invoice.estatus:
                logger.info(
                    f"Invoice {invoice.numero_comprobante} status changed from "
                    f"{old_status.value} to {invoice.estatus.value}"
                )
            logger.info(f"Updated invoice {invoice.numero_comprobante}: por_cobrar={invoice.por_cobrar}")
            return invoice

        except HTTPException:
            raise
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=DUPLICATE_DETAIL
            )
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error updating invoice {invoice_id}: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error al actualizar factura"
            )

    def delete_invoice(self, invoice_id: UUID) -> None:
        """Eliminar factura (borrado físico)"""
        try:
            invoice = self.get_invoice_by_id(invoice_id)
            numero = invoice.numero_comprobante
            self.db.delete(invoice)
            self.db.commit()
            logger.info(f"Deleted invoice {numero}")

        except HTTPException:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"Error deleting invoice {invoice_id}: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error al eliminar factura"
            )

    def get_invoices(self, filters: InvoiceFilters, limit: Optional[int] = None, offset: int = 0) -> List[Invoice]:
        """Obtener lista de facturas con filtros, más recientes primero"""
        try:
            query = self.db.query(Invoice)

            if filters.estatus:
                query = query.filter(Invoice.estatus == filters.estatus)

            if filters.cliente:
                query = query.filter(Invoice.cliente.ilike(f"%{filters.cliente}%"))

            if filters.numero_comprobante:
                query = query.filter(Invoice.numero_comprobante.ilike(f"%{filters.numero_comprobante}%"))

            query = query.order_by(desc(Invoice.created_at), desc(Invoice.numero_comprobante))

            if offset:
                query = query.offset(offset)
            if limit is not None:
                query = query.limit(limit)

            invoices = query.all()
            logger.debug(f"Retrieved {len(invoices)} invoices")
            return invoices

        except Exception as e:
            logger.error(f"Error getting invoices: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error al obtener facturas"
            )

    def get_overdue_invoices(self, today: Optional[date] = None) -> List[Invoice]:
        """Facturas pendientes con fecha de vencimiento pasada y saldo por cobrar"""
        today = today or date.today()
        try:
            return self.db.query(Invoice).filter(
                Invoice.estatus == InvoiceStatus.PENDIENTE,
                Invoice.fecha_vencimiento < today,
                Invoice.por_cobrar > 0
            ).order_by(asc(Invoice.fecha_vencimiento)).all()

        except Exception as e:
            logger.error(f"Error getting overdue invoices: {e}", exc_info=True)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error al obtener facturas vencidas"
            )

    # --- Carga masiva ---

    def commit_bulk_invoices(self, candidates: Sequence[InvoiceCandidate]) -> BulkUploadResponse:
        """
        Confirmar una carga masiva ya validada.

        Filas en orden y una por una, cada una en su propia transacción: el
        duplicado o error de una fila se reporta y no detiene el lote.
        Genera una sola notificación con el resumen.
        """
        outcome = BulkCommitOutcome()
        logger.info(f"Starting bulk upload of {len(candidates)} invoices")

        for position, candidate in enumerate(candidates, start=1):
            # Fila del archivo validado cuando viene; si no, posición en la lista
            fila = candidate.fila or position
            numero = candidate.numero_comprobante
            try:
                if self._find_by_numero(numero):
                    outcome.fail(fila, numero, f"Número de comprobante {numero} ya existe")
                    continue

                invoice = self._build_invoice(candidate)
                if candidate.por_cobrar is not None and to_money(candidate.por_cobrar) != invoice.por_cobrar:
                    logger.warning(
                        f"Row {fila} ({numero}): por_cobrar {candidate.por_cobrar} recalculated as {invoice.por_cobrar}"
                    )

                self.db.add(invoice)
                self.db.commit()
                outcome.succeeded.append(invoice)
                logger.debug(f"Row {fila}: created invoice {numero} ({invoice.estatus.value})")

            except IntegrityError:
                # Otro proceso insertó el mismo número entre la verificación y el insert
                self.db.rollback()
                outcome.fail(fila, numero, f"Número de comprobante {numero} ya existe")
            except Exception as e:
                self.db.rollback()
                logger.error(f"Error creating invoice at row {fila} ({numero}): {e}", exc_info=True)
                outcome.fail(fila, numero, str(e) or "Error desconocido")

        logger.info(f"Bulk upload completed - Created: {outcome.created}, Errors: {outcome.errors}")

        summary = f"{outcome.created} facturas creadas exitosamente"
        if outcome.errors:
            summary += f", {outcome.errors} errores"
        self._notify(
            "Carga Masiva Completada",
            summary,
            NotificationType.SUCCESS if outcome.errors == 0 else NotificationType.WARNING,
        )

        return BulkUploadResponse(
            message=f"Carga masiva completada: {outcome.created} facturas creadas, {outcome.errors} errores",
            created=outcome.created,
            errors=outcome.errors,
            error_details=outcome.error_details(),
        )

"""
Repositorio para operaciones de Payment.
"""

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Enrollment, Payment
from app.schemas.payment import EnrollmentStatus, PaymentStatus


logger = structlog.get_logger(__name__)


class PaymentRepository:
    """Repositorio para pagos y sus inscripciones asociadas."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_with_enrollments(
        self,
        user_id: int,
        course_ids: list[int],
        order_code: int,
        amount: int,
        description: str,
        currency: str = "VND",
        method: str = "PAYOS",
    ) -> Payment:
        """Crea un pago PENDING con una inscripción PENDING por curso."""
        payment = Payment(
            user_id=user_id,
            order_code=order_code,
            amount=amount,
            currency=currency,
            method=method,
            description=description,
            status=PaymentStatus.PENDING.value,
            payment_data={"course_ids": course_ids},
            enrollments=[
                Enrollment(
                    user_id=user_id,
                    course_id=course_id,
                    status=EnrollmentStatus.PENDING.value,
                )
                for course_id in course_ids
            ],
        )

        self.db.add(payment)
        await self.db.flush()

        logger.info(
            "Payment created",
            payment_id=payment.id,
            order_code=order_code,
            enrollments=len(course_ids),
        )
        return payment

    async def get_by_id(self, payment_id: int) -> Payment | None:
        """Obtiene un pago por ID."""
        result = await self.db.execute(
            select(Payment).where(Payment.id == payment_id)
        )
        return result.scalar_one_or_none()

    async def get_by_order_code(self, order_code: int) -> Payment | None:
        """Obtiene un pago por order code de PayOS."""
        result = await self.db.execute(
            select(Payment).where(Payment.order_code == order_code)
        )
        return result.scalar_one_or_none()

    async def set_status(
        self,
        payment: Payment,
        status: PaymentStatus,
        enrollment_status: EnrollmentStatus | None = None,
        payment_data: dict[str, Any] | None = None,
    ) -> Payment:
        """
        Cambia el estado del pago y, opcionalmente, de todas sus inscripciones.

        Todo ocurre en la misma transacción de la sesión.
        """
        payment.status = status.value
        if status == PaymentStatus.COMPLETED:
            payment.paid_at = datetime.now(timezone.utc)
        elif status == PaymentStatus.FAILED:
            payment.paid_at = None

        if payment_data is not None:
            # Nueva instancia para que SQLAlchemy detecte el cambio en JSON
            payment.payment_data = {**(payment.payment_data or {}), **payment_data}

        if enrollment_status is not None:
            for enrollment in payment.enrollments:
                enrollment.status = enrollment_status.value

        await self.db.flush()

        logger.info(
            "Payment status updated",
            payment_id=payment.id,
            order_code=payment.order_code,
            status=status.value,
            enrollments=len(payment.enrollments),
        )
        return payment

    async def set_checkout_url(self, payment: Payment, checkout_url: str) -> Payment:
        payment.checkout_url = checkout_url
        await self.db.flush()
        return payment

    async def delete_pending_for_courses(self, user_id: int, course_ids: list[int]) -> int:
        """
        Elimina los pagos no completados del usuario para esos cursos.

        Un pago en lote se elimina completo, con todas sus inscripciones.
        También se eliminan inscripciones PENDING sueltas (sin pago).

        Returns:
            Número de pagos eliminados
        """
        result = await self.db.execute(
            select(Enrollment).where(
                Enrollment.user_id == user_id,
                Enrollment.course_id.in_(course_ids),
                Enrollment.status == EnrollmentStatus.PENDING.value,
            )
        )
        pending = result.scalars().all()
        if not pending:
            return 0

        payment_ids = sorted({e.payment_id for e in pending if e.payment_id is not None})
        orphan_ids = [e.id for e in pending if e.payment_id is None]

        if payment_ids:
            await self.db.execute(
                delete(Enrollment).where(Enrollment.payment_id.in_(payment_ids))
            )
            await self.db.execute(
                delete(Payment).where(Payment.id.in_(payment_ids))
            )
        if orphan_ids:
            await self.db.execute(delete(Enrollment).where(Enrollment.id.in_(orphan_ids)))

        logger.info(
            "Stale pending payments removed",
            user_id=user_id,
            payments=len(payment_ids),
            orphan_enrollments=len(orphan_ids),
        )
        return len(payment_ids)

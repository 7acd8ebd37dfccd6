"""
Servicio principal de pagos.
Orquesta inscripciones, pagos y el gateway PayOS.
"""

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.adapters import (
    PayOSAdapter,
    PaymentItem,
    PaymentRequest,
    generate_order_code,
    get_payment_gateway,
    map_provider_status,
)
from app.adapters.mappers import to_webhook_payload
from app.config import settings
from app.db.models import Payment
from app.db.repositories import EnrollmentRepository, PaymentRepository
from app.schemas.payment import (
    STATUS_MESSAGES,
    CheckoutItem,
    EnrollmentStatus,
    PaymentCreateRequest,
    PaymentCreateResponse,
    PaymentResponse,
    PaymentStatus,
    PaymentVerifyResponse,
)
from app.utils.exceptions import (
    EnrollmentConflictError,
    InvalidPaymentStateError,
    MalformedPayload,
    MockModeDisabledError,
    PaymentCreationFailed,
    PaymentNotFoundError,
    PaymentOwnershipError,
    WebhookVerificationError,
)


logger = structlog.get_logger(__name__)

# Límites de PayOS
DESCRIPTION_MAX_LENGTH = 25
ITEM_NAME_MAX_LENGTH = 50


class PaymentService:
    """
    Servicio para gestión de pagos de cursos.

    Coordina entre los repositorios de BD y el gateway de pago. La
    idempotencia de creación (no generar dos links para el mismo pedido)
    es responsabilidad de esta capa y de la ruta, no del adapter.
    """

    def __init__(
        self,
        db: AsyncSession,
        gateway: PayOSAdapter | None = None,
    ):
        self.db = db
        self.repo = PaymentRepository(db)
        self.enrollment_repo = EnrollmentRepository(db)
        self._gateway = gateway or get_payment_gateway()

    @property
    def gateway(self) -> PayOSAdapter:
        return self._gateway

    async def create_payment(self, request: PaymentCreateRequest) -> PaymentCreateResponse:
        """
        Crea un pago para uno o varios cursos.

        1. Rechaza cursos en los que el usuario ya está inscrito
        2. Elimina pagos/inscripciones pendientes previos de esos cursos
        3. Crea inscripciones PENDING y un pago PENDING con el total
        4. Obtiene el checkout URL (mock o PayOS)

        Raises:
            EnrollmentConflictError: Si ya hay inscripción activa
            PaymentCreationFailed: Si PayOS no crea el link
        """
        items = _unique_items(request.items)
        course_ids = [item.course_id for item in items]
        user_id = request.user_id

        active = await self.enrollment_repo.active_course_ids(user_id, course_ids)
        if active:
            raise EnrollmentConflictError(active)

        await self.repo.delete_pending_for_courses(user_id, course_ids)

        amount = sum(item.price for item in items)
        order_code = generate_order_code()
        description = _describe(items)

        payment = await self.repo.create_with_enrollments(
            user_id=user_id,
            course_ids=course_ids,
            order_code=order_code,
            amount=amount,
            description=description,
        )

        if self.gateway.is_mock_mode():
            checkout_url = self.gateway.get_mock_payment_url(order_code)
            logger.info("Mock payment link created", order_code=order_code)
        else:
            payment_request = PaymentRequest(
                order_code=order_code,
                amount=amount,
                description=description,
                items=tuple(
                    PaymentItem(
                        name=item.title[:ITEM_NAME_MAX_LENGTH],
                        quantity=1,
                        price=item.price,
                    )
                    for item in items
                ),
                return_url=str(request.return_url or f"{settings.FRONTEND_URL}/payment/success"),
                cancel_url=str(request.cancel_url or f"{settings.FRONTEND_URL}/payment/cancel"),
            )
            try:
                checkout_url = await self.gateway.create_payment_link(payment_request)
            except PaymentCreationFailed as e:
                await self.repo.set_status(
                    payment,
                    PaymentStatus.FAILED,
                    payment_data={"creation_error": e.provider_desc},
                )
                # Persistir el FAILED aunque la ruta haga rollback
                await self.db.commit()
                raise

        await self.repo.set_checkout_url(payment, checkout_url)

        logger.info(
            "Checkout created",
            payment_id=payment.id,
            order_code=order_code,
            courses=len(course_ids),
            amount=amount,
        )

        return PaymentCreateResponse(
            payment_url=checkout_url,
            order_code=order_code,
            payment_id=payment.id,
            enrollment_ids=payment.enrollment_ids,
        )

    async def handle_webhook(self, body: Any) -> dict[str, Any]:
        """
        Procesa un webhook de PayOS.

        1. Valida estructura y firma
        2. Busca el pago por order code
        3. Ignora pagos ya completados o reembolsados (idempotencia)
        4. Actualiza pago e inscripciones en la misma transacción

        Raises:
            MalformedPayload: Cuerpo inválido o sin orderCode
            WebhookVerificationError: Firma inválida
            PaymentNotFoundError: Order code desconocido
        """
        payload = to_webhook_payload(body)

        logger.info("PayOS webhook received", order_code=payload.order_code)

        if not self.gateway.verify_webhook_signature(payload, payload.signature):
            raise WebhookVerificationError("invalid signature")

        order_code = _coerce_order_code(payload.order_code)

        payment = await self.repo.get_by_order_code(order_code)
        if not payment:
            logger.error("Payment not found for webhook", order_code=order_code)
            raise PaymentNotFoundError(f"order_code:{order_code}")

        if payment.status == PaymentStatus.COMPLETED.value:
            logger.info("Payment already completed, skipping webhook", order_code=order_code)
            return {"success": True, "message": "Already processed", "order_code": order_code}

        if payment.status == PaymentStatus.REFUNDED.value:
            logger.info("Payment was refunded, skipping webhook", order_code=order_code)
            return {"success": True, "message": "Payment was refunded", "order_code": order_code}

        is_success = payload.is_success
        await self.repo.set_status(
            payment,
            PaymentStatus.COMPLETED if is_success else PaymentStatus.FAILED,
            enrollment_status=EnrollmentStatus.ACTIVE if is_success else EnrollmentStatus.PENDING,
            payment_data={"webhook": payload.raw},
        )

        return {
            "success": True,
            "message": f"Payment {'completed' if is_success else 'failed'}",
            "order_code": order_code,
        }

    async def verify_payment(self, order_code: int, user_id: int) -> PaymentVerifyResponse:
        """
        Verifica un pago cuando el usuario vuelve del checkout.

        Si sigue PENDING consulta a PayOS. Una respuesta vacía del gateway
        significa "estado desconocido": el registro no se toca.
        """
        payment = await self.repo.get_by_order_code(order_code)
        if not payment:
            raise PaymentNotFoundError(f"order_code:{order_code}")

        if payment.user_id != user_id:
            raise PaymentOwnershipError(order_code)

        if payment.status == PaymentStatus.PENDING.value:
            provider_status = await self.gateway.get_payment_info(order_code)

            if provider_status is None:
                logger.info("Provider status unknown, keeping PENDING", order_code=order_code)
            else:
                new_status = map_provider_status(provider_status)
                logger.info(
                    "Provider status mapped",
                    order_code=order_code,
                    provider_status=provider_status.value,
                    status=new_status.value,
                )
                if new_status != PaymentStatus.PENDING:
                    await self.repo.set_status(
                        payment,
                        new_status,
                        enrollment_status=(
                            EnrollmentStatus.ACTIVE
                            if new_status == PaymentStatus.COMPLETED
                            else EnrollmentStatus.PENDING
                        ),
                        payment_data={
                            "verified_at": datetime.now(timezone.utc).isoformat(),
                            "provider_status": provider_status.value,
                        },
                    )

        return self._to_verify_response(payment)

    async def process_refund(self, payment_id: int) -> PaymentResponse:
        """
        Marca un pago completado como reembolsado.

        El reembolso en PayOS se gestiona fuera de este servicio.
        """
        payment = await self.repo.get_by_id(payment_id)
        if not payment:
            raise PaymentNotFoundError(str(payment_id))

        if payment.status != PaymentStatus.COMPLETED.value:
            raise InvalidPaymentStateError(str(payment_id), payment.status, "refund")

        if not self.gateway.is_mock_mode():
            logger.info(
                "Refund must be issued in the PayOS dashboard",
                order_code=payment.order_code,
            )

        await self.repo.set_status(
            payment,
            PaymentStatus.REFUNDED,
            enrollment_status=EnrollmentStatus.REFUNDED,
            payment_data={"refunded_at": datetime.now(timezone.utc).isoformat()},
        )

        logger.info("Payment refunded", payment_id=payment_id, amount=payment.amount)
        return self._to_response(payment)

    async def mock_payment_complete(self, order_code: int) -> PaymentVerifyResponse:
        """Completa un pago simulando el webhook de PayOS (solo modo mock)."""
        if not self.gateway.is_mock_mode():
            raise MockModeDisabledError()

        payment = await self.repo.get_by_order_code(order_code)
        if not payment:
            raise PaymentNotFoundError(f"order_code:{order_code}")

        body = self.gateway.build_mock_webhook_payload(order_code, payment.amount)
        await self.handle_webhook(body)

        response = self._to_verify_response(payment)
        response.message = "Mock payment completed"
        return response

    async def get_payment(self, payment_id: int) -> PaymentResponse:
        """
        Obtiene un pago por ID.

        Raises:
            PaymentNotFoundError: Si el pago no existe
        """
        payment = await self.repo.get_by_id(payment_id)
        if not payment:
            raise PaymentNotFoundError(str(payment_id))
        return self._to_response(payment)

    def _to_verify_response(self, payment: Payment) -> PaymentVerifyResponse:
        status = PaymentStatus(payment.status)
        return PaymentVerifyResponse(
            success=status == PaymentStatus.COMPLETED,
            status=status,
            message=STATUS_MESSAGES[status],
            payment_id=payment.id,
            order_code=payment.order_code,
            enrollment_ids=payment.enrollment_ids,
        )

    def _to_response(self, payment: Payment) -> PaymentResponse:
        """Convierte modelo de BD a schema de respuesta."""
        return PaymentResponse(
            id=payment.id,
            user_id=payment.user_id,
            order_code=payment.order_code,
            amount=payment.amount,
            currency=payment.currency,
            status=PaymentStatus(payment.status),
            method=payment.method,
            description=payment.description,
            checkout_url=payment.checkout_url,
            enrollment_ids=payment.enrollment_ids,
            paid_at=payment.paid_at,
            created_at=payment.created_at,
            updated_at=payment.updated_at,
        )


def _unique_items(items: list[CheckoutItem]) -> list[CheckoutItem]:
    """Elimina cursos repetidos conservando el orden."""
    seen: set[int] = set()
    unique = []
    for item in items:
        if item.course_id not in seen:
            seen.add(item.course_id)
            unique.append(item)
    return unique


def _describe(items: list[CheckoutItem]) -> str:
    if len(items) == 1:
        text = f"Course #{items[0].course_id}"
    else:
        text = f"Payment for {len(items)} courses"
    return text[:DESCRIPTION_MAX_LENGTH]


def _coerce_order_code(value: Any) -> int:
    if value is None or value == "" or isinstance(value, bool):
        raise MalformedPayload("missing orderCode")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise MalformedPayload(f"invalid orderCode {value!r}") from e

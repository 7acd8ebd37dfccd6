"""
Endpoints para gestión de pagos de cursos.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.adapters import PayOSAdapter, get_payment_gateway
from app.db.database import get_db
from app.schemas import (
    APIResponse,
    PaymentCreateRequest,
    PaymentCreateResponse,
    PaymentResponse,
    PaymentVerifyResponse,
)
from app.services import PaymentService
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
from app.utils.idempotency import (
    InMemoryIdempotencyManager,
    IdempotencyManager,
    get_idempotency_manager_with_fallback,
    make_checkout_key,
)


logger = structlog.get_logger(__name__)

router = APIRouter()


async def get_payment_service(
    db: AsyncSession = Depends(get_db),
    gateway: PayOSAdapter = Depends(get_payment_gateway),
) -> PaymentService:
    """Dependency para obtener PaymentService."""
    return PaymentService(db, gateway)


@router.post(
    "/create",
    response_model=APIResponse[PaymentCreateResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Crear un pago de cursos",
    description="""
    Crea inscripciones pendientes y un link de pago de PayOS.

    - Soporta idempotencia via header `Idempotency-Key`
    - En modo mock retorna la URL local de simulación
    - El pago queda `PENDING` hasta el webhook o la verificación

    **Importante**: el precio de cada item se cobra tal cual llega. Este
    endpoint solo debe ser invocado por el backend de cursos (llamador
    interno de confianza), no expuesto directamente al cliente.
    """,
)
async def create_payment(
    request: PaymentCreateRequest,
    idempotency_key: Annotated[str | None, Header(alias="Idempotency-Key")] = None,
    service: PaymentService = Depends(get_payment_service),
    idempotency: IdempotencyManager | InMemoryIdempotencyManager = Depends(
        get_idempotency_manager_with_fallback
    ),
):
    """Crea un nuevo pago."""
    key = make_checkout_key(request.user_id, idempotency_key) if idempotency_key else None

    if key:
        cached = await idempotency.get_cached_response(key)
        if cached:
            logger.info("Returning cached checkout", user_id=request.user_id)
            return APIResponse(
                success=True,
                message="Payment retrieved from cache (idempotent)",
                data=PaymentCreateResponse(**cached),
            )

        if await idempotency.is_processing(key):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Request with this idempotency key is already being processed",
            )

    try:
        result = await service.create_payment(request)

        # Cachear antes de liberar el lock: un reintento ve el cache o el lock
        if key:
            await idempotency.cache_response(key, result.model_dump(mode="json"))
            await idempotency.release_lock(key)

    except EnrollmentConflictError as e:
        if key:
            await idempotency.release_lock(key)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except PaymentCreationFailed as e:
        if key:
            await idempotency.release_lock(key)
        logger.error("Payment link creation failed", user_id=request.user_id, error=e.provider_desc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Could not create payment link",
        )
    except Exception:
        if key:
            await idempotency.release_lock(key)
        raise

    return APIResponse(
        success=True,
        message="Payment created successfully",
        data=result,
    )


@router.get(
    "/verify/{order_code}",
    response_model=APIResponse[PaymentVerifyResponse],
    summary="Verificar un pago al volver del checkout",
)
async def verify_payment(
    order_code: int,
    user_id: int = Query(gt=0),
    service: PaymentService = Depends(get_payment_service),
):
    """Consulta el estado del pago y lo sincroniza con PayOS si sigue pendiente."""
    try:
        result = await service.verify_payment(order_code, user_id)
    except PaymentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except PaymentOwnershipError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)

    return APIResponse(success=result.success, message=result.message, data=result)


@router.get(
    "/mock-pay/{order_code}",
    response_model=APIResponse[PaymentVerifyResponse],
    summary="Completar un pago simulado",
    description="Solo disponible con `PAYOS_MOCK_MODE=true`. Simula el webhook de éxito.",
)
async def mock_pay(
    order_code: int,
    service: PaymentService = Depends(get_payment_service),
):
    try:
        result = await service.mock_payment_complete(order_code)
    except MockModeDisabledError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
    except PaymentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except (MalformedPayload, WebhookVerificationError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return APIResponse(success=result.success, message=result.message, data=result)


@router.get(
    "/{payment_id}",
    response_model=APIResponse[PaymentResponse],
    summary="Obtener un pago por ID",
)
async def get_payment(
    payment_id: int,
    service: PaymentService = Depends(get_payment_service),
):
    """Obtiene los detalles de un pago."""
    try:
        payment = await service.get_payment(payment_id)
    except PaymentNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Payment not found: {payment_id}",
        )
    return APIResponse(success=True, data=payment)


@router.post(
    "/{payment_id}/refund",
    response_model=APIResponse[PaymentResponse],
    summary="Reembolsar un pago",
)
async def refund_payment(
    payment_id: int,
    service: PaymentService = Depends(get_payment_service),
):
    """Marca como reembolsado un pago completado y sus inscripciones."""
    try:
        payment = await service.process_refund(payment_id)
    except PaymentNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Payment not found: {payment_id}",
        )
    except InvalidPaymentStateError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.message,
        )

    return APIResponse(
        success=True,
        message="Payment refunded successfully",
        data=payment,
    )

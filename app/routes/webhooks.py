"""
Endpoints para webhooks entrantes.
"""

import json

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.routes.payments import get_payment_service
from app.schemas import APIResponse
from app.services import PaymentService
from app.utils.exceptions import (
    MalformedPayload,
    PaymentNotFoundError,
    WebhookVerificationError,
)


logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post(
    "/payos",
    response_model=APIResponse[dict],
    status_code=status.HTTP_200_OK,
    summary="Webhook de PayOS",
    description="""
    Endpoint para recibir webhooks de PayOS.

    - Valida la firma HMAC-SHA256 del campo `signature` sobre `data`
    - Actualiza el pago y las inscripciones en la misma transacción
    - Reintentos sobre pagos ya completados no tienen efecto

    **Importante**: Esta URL debe registrarse en el dashboard de PayOS.
    """,
)
async def payos_webhook(
    request: Request,
    service: PaymentService = Depends(get_payment_service),
):
    """Procesa un webhook de PayOS."""
    raw = await request.body()
    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload",
        )

    try:
        result = await service.handle_webhook(body)
    except WebhookVerificationError as e:
        logger.error("PayOS webhook verification failed")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=e.message,
        )
    except MalformedPayload as e:
        logger.warning("Malformed PayOS webhook", error=e.message)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except PaymentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    logger.info("PayOS webhook processed", order_code=result.get("order_code"))
    return APIResponse(success=True, message=result["message"], data=result)

"""
Excepciones personalizadas del microservicio de pagos.
"""


class PaymentServiceError(Exception):
    """Error base del servicio de pagos."""

    def __init__(self, message: str, code: str = "PAYMENT_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class PaymentCreationFailed(PaymentServiceError):
    """
    PayOS rechazó la creación del link de pago o la llamada no se completó.

    `provider_desc` guarda la descripción devuelta por el proveedor (o la
    causa técnica) para logs; no debe mostrarse tal cual al usuario final.
    """

    def __init__(self, provider_desc: str):
        super().__init__(
            message=f"Payment creation failed: {provider_desc}",
            code="PAYMENT_CREATION_FAILED",
        )
        self.provider_desc = provider_desc


class MalformedPayload(PaymentServiceError):
    """Payload del proveedor o del webhook con estructura inválida."""

    def __init__(self, message: str):
        super().__init__(
            message=f"Malformed payload: {message}",
            code="MALFORMED_PAYLOAD",
        )


class PaymentNotFoundError(PaymentServiceError):
    """El pago no fue encontrado."""

    def __init__(self, payment_ref: str):
        super().__init__(
            message=f"Payment not found: {payment_ref}",
            code="PAYMENT_NOT_FOUND",
        )
        self.payment_ref = payment_ref


class InvalidPaymentStateError(PaymentServiceError):
    """Operación inválida para el estado actual del pago."""

    def __init__(self, payment_id: str, current_state: str, operation: str):
        super().__init__(
            message=f"Cannot {operation} payment {payment_id} in state {current_state}",
            code="INVALID_PAYMENT_STATE",
        )
        self.payment_id = payment_id
        self.current_state = current_state
        self.operation = operation


class WebhookVerificationError(PaymentServiceError):
    """Error de verificación de webhook."""

    def __init__(self, message: str):
        super().__init__(
            message=f"Webhook verification failed: {message}",
            code="WEBHOOK_VERIFICATION_FAILED",
        )


class EnrollmentConflictError(PaymentServiceError):
    """El usuario ya tiene inscripción activa en alguno de los cursos."""

    def __init__(self, course_ids: list[int]):
        super().__init__(
            message=f"Already enrolled in courses: {', '.join(map(str, course_ids))}",
            code="ALREADY_ENROLLED",
        )
        self.course_ids = course_ids


class PaymentOwnershipError(PaymentServiceError):
    """El pago pertenece a otro usuario."""

    def __init__(self, order_code: int):
        super().__init__(
            message=f"Payment {order_code} does not belong to this user",
            code="PAYMENT_FORBIDDEN",
        )
        self.order_code = order_code


class MockModeDisabledError(PaymentServiceError):
    """Operación de pruebas invocada fuera de modo mock."""

    def __init__(self):
        super().__init__(
            message="Mock payments are not allowed when mock mode is disabled",
            code="MOCK_MODE_DISABLED",
        )

"""
Modelos SQLAlchemy para el microservicio de pagos.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from app.schemas.payment import EnrollmentStatus, PaymentStatus


# JSONB en PostgreSQL, JSON genérico en SQLite (tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """Base para todos los modelos."""

    type_annotation_map = {
        dict[str, Any]: JSONType,
    }


class TimestampMixin:
    """Mixin para campos de timestamp."""

    # Traer los valores generados por la BD tras INSERT/UPDATE (sin lazy load en async)
    __mapper_args__ = {"eager_defaults": True}

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )


class Payment(Base, TimestampMixin):
    """Pago de uno o varios cursos, correlacionado con PayOS por `order_code`."""

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    # Correlación con PayOS
    order_code: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        unique=True,
        index=True,
    )

    # Datos del pago (VND, sin decimales)
    amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="VND", nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=PaymentStatus.PENDING.value,
        nullable=False,
        index=True,
    )
    method: Mapped[str] = mapped_column(String(20), default="PAYOS", nullable=False)

    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    checkout_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Webhook recibido, estado consultado, etc.
    payment_data: Mapped[dict[str, Any]] = mapped_column(
        default=dict,
        nullable=False,
    )

    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    enrollments: Mapped[list["Enrollment"]] = relationship(
        back_populates="payment",
        lazy="selectin",
    )

    @property
    def enrollment_ids(self) -> list[int]:
        return [enrollment.id for enrollment in self.enrollments]

    def __repr__(self) -> str:
        return f"<Payment {self.order_code} {self.status}>"


class Enrollment(Base, TimestampMixin):
    """Inscripción de un usuario a un curso, activada al completarse el pago."""

    __tablename__ = "enrollments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    course_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=EnrollmentStatus.PENDING.value,
        nullable=False,
    )

    payment_id: Mapped[int | None] = mapped_column(
        ForeignKey("payments.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    payment: Mapped[Payment | None] = relationship(back_populates="enrollments")

    def __repr__(self) -> str:
        return f"<Enrollment user={self.user_id} course={self.course_id} {self.status}>"

"""
Repositorio para operaciones de Enrollment.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Enrollment
from app.schemas.payment import EnrollmentStatus


class EnrollmentRepository:
    """Consultas de inscripciones usadas por el flujo de pago."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def active_course_ids(self, user_id: int, course_ids: list[int]) -> list[int]:
        """Cursos de `course_ids` en los que el usuario ya está inscrito (ACTIVE)."""
        result = await self.db.execute(
            select(Enrollment.course_id).where(
                Enrollment.user_id == user_id,
                Enrollment.course_id.in_(course_ids),
                Enrollment.status == EnrollmentStatus.ACTIVE.value,
            )
        )
        return sorted(set(result.scalars().all()))

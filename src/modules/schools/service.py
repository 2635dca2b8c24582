"""Service for Schools module."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.core.exceptions import ConflictError, NotFoundError
from src.modules.schools.models import School


class SchoolService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def register_school(self, code: str, name: str, currency: str | None = None) -> School:
        """Mirror a tenant provisioned in the identity provider."""
        existing = await self.db.scalar(select(School).where(School.code == code))
        if existing:
            raise ConflictError(f"School with code={code} already exists", "code", code)

        school = School(code=code, name=name, currency=currency or settings.default_currency)
        self.db.add(school)
        await self.db.commit()
        await self.db.refresh(school)
        return school

    async def get_school(self, school_id: int) -> School:
        school = await self.db.get(School, school_id)
        if not school:
            raise NotFoundError("School", school_id)
        return school

    async def list_active_school_ids(self) -> list[int]:
        result = await self.db.execute(
            select(School.id).where(School.is_active == True).order_by(School.id)  # noqa: E712
        )
        return list(result.scalars().all())

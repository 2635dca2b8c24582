from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.documents.models import DocumentSequence


class SequenceAllocator:
    """
    Atomic per-tenant counters.

    Each allocation is one statement:
        INSERT ... VALUES (1) ON CONFLICT DO UPDATE SET last_seq = last_seq + 1
        RETURNING last_seq
    so concurrent allocations serialize on the row inside the database and
    never observe the same value. The row lock is held until the caller's
    transaction commits; a rolled-back allocation is not consumed.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _insert(self):
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(DocumentSequence)
        if dialect == "sqlite":
            return sqlite_insert(DocumentSequence)
        raise RuntimeError(f"Atomic sequence allocation not supported on {dialect}")

    async def next_value(self, school_id: int, name: str, period: int = 0) -> int:
        """Increment-or-initialize the counter and return the new value (first is 1)."""
        stmt = (
            self._insert()
            .values(school_id=school_id, name=name, period=period, last_seq=1)
            .on_conflict_do_update(
                index_elements=["school_id", "name", "period"],
                set_={"last_seq": DocumentSequence.last_seq + 1},
            )
            .returning(DocumentSequence.last_seq)
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def peek(self, school_id: int, name: str, period: int = 0) -> int:
        """Read the last issued value without writing. 0 when nothing was issued."""
        value = await self.session.scalar(
            select(DocumentSequence.last_seq).where(
                DocumentSequence.school_id == school_id,
                DocumentSequence.name == name,
                DocumentSequence.period == period,
            )
        )
        return int(value or 0)


class DocumentNumberGenerator:
    """
    Generates tenant-scoped yearly document numbers: PREFIX-YYYY-NNNNNN

    Examples:
        INV-2026-000001
        INV-2026-000042
    """

    def __init__(self, session: AsyncSession):
        self.allocator = SequenceAllocator(session)

    async def generate(self, school_id: int, prefix: str, year: int | None = None) -> str:
        if year is None:
            year = datetime.now().year
        seq = await self.allocator.next_value(school_id, prefix.lower(), period=year)
        return f"{prefix}-{year}-{seq:06d}"


from sqlalchemy import BigInteger, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import Base, BigIntPK


class DocumentSequence(Base):
    """
    Tenant-scoped counter rows (receipt numbers, invoice numbers).

    period is 0 for counters that never reset, otherwise the year.
    """

    __tablename__ = "document_sequences"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    school_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("schools.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(30), nullable=False)
    period: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_seq: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("school_id", "name", "period", name="uq_document_sequence_scope"),
    )

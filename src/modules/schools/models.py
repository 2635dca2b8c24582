"""School (tenant) model."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database.base import BaseModel


class School(BaseModel):
    """
    Tenant registry row.

    Tenants are provisioned by the identity provider; this row exists so
    every tenant-owned table has something to reference.
    """

    __tablename__ = "schools"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NGN")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

import asyncio
from logging.config import fileConfig

# ruff: noqa: F401

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

from src.core.config import settings
from src.core.database.base import Base

# Import all models here so they are registered with Base.metadata
from src.modules.schools.models import School
from src.modules.academics.models import AcademicSession, Term, ClassGroup, Student, Enrollment
from src.modules.fees.models import FeeItem, FeeSchedule, FeeScheduleLine
from src.modules.invoices.models import Invoice, InvoiceLine, FeeAdjustment, InstallmentPlan, Installment
from src.modules.payments.models import PaymentIntent, PaymentTransaction, ManualPaymentProof
from src.modules.receipts.models import Receipt
from src.modules.results.models import ResultReleasePolicy, ReportCard
from src.modules.messaging.models import OutboundMessage
from src.integrations.gateways.models import PaymentWebhookEvent
from src.core.audit.models import AuditLog
from src.core.documents.models import DocumentSequence
from src.core.events.models import EventRecord, QueueMessage

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def get_url() -> str:
    return settings.database_url


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = get_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Run migrations in 'online' mode with async engine."""
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = get_url()

    connectable = async_engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

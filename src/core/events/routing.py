"""Named routing rules and queue configuration."""

from dataclasses import dataclass
from enum import StrEnum

from src.core.config import settings


class EventSource(StrEnum):
    BILLING = "billing"
    PAYMENTS = "payments"
    ACADEMICS = "academics"
    IMPORTS = "imports"
    SCHEDULER = "scheduler"


class DetailType(StrEnum):
    INVOICE_GENERATED = "invoice.generated"
    INVOICE_OVERDUE = "invoice.overdue"
    INVOICE_OVERDUE_SCAN = "invoice.overdue.scan"
    INVOICING_PROCESSED = "invoicing.processed"
    PAYMENT_CONFIRMED = "payment.confirmed"
    MESSAGING_REQUESTED = "messaging.requested"
    RESULT_READY = "result.ready"
    IMPORT_REQUESTED = "import.requested"


class QueueName(StrEnum):
    INVOICING = "invoicing"
    MESSAGING = "messaging"
    RECEIPTS = "receipts"
    IMPORT = "import"


@dataclass(frozen=True)
class RoutingRule:
    name: str
    detail_types: frozenset[str]
    targets: tuple[str, ...]


ROUTING_RULES: tuple[RoutingRule, ...] = (
    RoutingRule(
        "payment-confirmed",
        frozenset({DetailType.PAYMENT_CONFIRMED}),
        (QueueName.MESSAGING, QueueName.INVOICING, QueueName.RECEIPTS),
    ),
    RoutingRule(
        "invoice-generated",
        frozenset({DetailType.INVOICE_GENERATED}),
        (QueueName.INVOICING,),
    ),
    RoutingRule(
        "messaging-requested",
        frozenset({DetailType.MESSAGING_REQUESTED}),
        (QueueName.MESSAGING,),
    ),
    RoutingRule(
        "result-ready",
        frozenset({DetailType.RESULT_READY}),
        (QueueName.MESSAGING,),
    ),
    RoutingRule(
        "overdue-scan",
        frozenset({DetailType.INVOICE_OVERDUE_SCAN}),
        (QueueName.INVOICING,),
    ),
    RoutingRule(
        "import-requested",
        frozenset({DetailType.IMPORT_REQUESTED}),
        (QueueName.IMPORT,),
    ),
)


def route(detail_type: str, rules: tuple[RoutingRule, ...] = ROUTING_RULES) -> list[str]:
    """Queues an event of this detail type fans out to, without duplicates."""
    targets: list[str] = []
    for rule in rules:
        if detail_type in rule.detail_types:
            for target in rule.targets:
                if str(target) not in targets:
                    targets.append(str(target))
    return targets


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff between receives, dead-letter after max_receive_count."""

    max_receive_count: int
    backoff_seconds: int
    multiplier: int = 2

    def delay_for(self, receive_count: int) -> int:
        return self.backoff_seconds * self.multiplier ** max(receive_count - 1, 0)


@dataclass(frozen=True)
class QueueConfig:
    name: str
    visibility_timeout: int
    retry: RetryPolicy

    @property
    def dlq_name(self) -> str:
        return f"{self.name}-dlq"


def queue_config(name: str) -> QueueConfig:
    timeouts = settings.queue_visibility_timeouts
    if name not in timeouts:
        raise KeyError(f"Unknown queue: {name}")
    return QueueConfig(
        name=name,
        visibility_timeout=timeouts[name],
        retry=RetryPolicy(
            max_receive_count=settings.queue_max_receive_count,
            backoff_seconds=settings.queue_retry_backoff_seconds,
        ),
    )

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel

from src.modules.payments.models import PaymentMethod
from src.shared.utils.money import from_minor_units, round_money

PAYSTACK_SUCCESS_EVENTS = {"charge.success"}
FLUTTERWAVE_SUCCESS_STATUSES = {"successful"}

_METHOD_BY_CHANNEL = {
    "card": PaymentMethod.CARD,
    "ussd": PaymentMethod.USSD,
    "cash": PaymentMethod.CASH,
    "bank": PaymentMethod.TRANSFER,
    "bank_transfer": PaymentMethod.TRANSFER,
    "banktransfer": PaymentMethod.TRANSFER,
    "transfer": PaymentMethod.TRANSFER,
    "account": PaymentMethod.TRANSFER,
    "dedicated_nuban": PaymentMethod.TRANSFER,
}


def normalize_method(channel: str | None) -> str:
    key = (channel or "").strip().lower()
    return _METHOD_BY_CHANNEL.get(key, PaymentMethod.TRANSFER).value


def _parse_datetime(value: Any) -> datetime | None:
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class GatewayNotification(BaseModel):
    """A webhook payload normalized across providers. Amounts are in major units."""

    provider: str
    event_type: str | None
    reference: str | None
    success: bool
    gross_amount: Decimal
    fee_amount: Decimal
    currency: str | None
    method: str
    paid_at: datetime | None

    @property
    def net_amount(self) -> Decimal:
        return round_money(self.gross_amount - self.fee_amount)

    @classmethod
    def from_paystack(cls, payload: dict[str, Any]) -> "GatewayNotification":
        data = payload.get("data") or {}
        event_type = payload.get("event")
        return cls(
            provider="paystack",
            event_type=event_type,
            reference=data.get("reference"),
            success=event_type in PAYSTACK_SUCCESS_EVENTS and data.get("status", "success") == "success",
            # kobo
            gross_amount=from_minor_units(data.get("amount") or 0),
            fee_amount=from_minor_units(data.get("fees") or 0),
            currency=data.get("currency"),
            method=normalize_method(data.get("channel")),
            paid_at=_parse_datetime(data.get("paid_at") or data.get("paidAt")),
        )

    @classmethod
    def from_flutterwave(cls, payload: dict[str, Any]) -> "GatewayNotification":
        data = payload.get("data") or {}
        return cls(
            provider="flutterwave",
            event_type=payload.get("event") or payload.get("event.type"),
            reference=data.get("tx_ref") or data.get("txRef"),
            success=(data.get("status") or "").lower() in FLUTTERWAVE_SUCCESS_STATUSES,
            gross_amount=round_money(data.get("amount") or 0),
            fee_amount=round_money(data.get("app_fee") or 0),
            currency=data.get("currency"),
            method=normalize_method(data.get("payment_type")),
            paid_at=_parse_datetime(data.get("created_at")),
        )


class WebhookAck(BaseModel):
    event_id: int
    status: str
    payment_txn_id: int | None = None

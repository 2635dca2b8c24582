from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database.session import get_db
from src.integrations.gateways.schemas import WebhookAck
from src.integrations.gateways.service import GatewayWebhookService
from src.shared.schemas.base import ApiResponse


router = APIRouter(prefix="/webhooks", tags=["Payment Gateways"])


@router.post("/{provider}", response_model=ApiResponse[WebhookAck])
async def receive_gateway_webhook(
    provider: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    service = GatewayWebhookService(db)
    provider = provider.lower()
    if not service.is_enabled(provider):
        # Unknown and unconfigured providers look the same
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    raw_body = await request.body()
    event = await service.process(provider, raw_body, request.headers)
    return ApiResponse(
        data=WebhookAck(
            event_id=event.id,
            status=event.status,
            payment_txn_id=event.payment_txn_id,
        ),
        message="Accepted",
    )

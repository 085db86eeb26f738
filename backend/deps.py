"""
Shared FastAPI dependencies.

Services are built once in the app lifespan and stored on app.state;
routers reach them only through these functions, which tests override.
"""

from __future__ import annotations

from typing import TypedDict

from fastapi import Depends, Query, Request

from services.notification_service import Notifier
from services.order_service import OrderPipeline
from services.payment_service import PaymentService


class Pagination(TypedDict):
    limit: int
    offset: int


def pagination_params(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=100_000),
) -> Pagination:
    return {"limit": limit, "offset": offset}


def get_payment_service(request: Request) -> PaymentService:
    return request.app.state.payment_service


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_order_pipeline(
    request: Request,
    payment_service: PaymentService = Depends(get_payment_service),
    notifier: Notifier = Depends(get_notifier),
) -> OrderPipeline:
    return OrderPipeline(
        payment_service,
        notifier,
        default_status=request.app.state.default_order_status,
    )

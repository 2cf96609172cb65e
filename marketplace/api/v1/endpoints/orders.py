from typing import Optional, List
import uuid
from math import ceil

from fastapi import APIRouter, HTTPException, status, Query

from marketplace.api.deps import DB, CurrentActor
from marketplace.config import settings
from marketplace.models.order import Order, OrderStatus
from marketplace.schemas.order import (
    OrderCreate,
    OrderResponse,
    OrderDetailResponse,
    OrderListResponse,
    OrderCountResponse,
    PaymentMethodListResponse,
    StatusHistoryResponse,
    StoreOrderStats,
    PaymentRequest,
    RefundRequest,
    RefundDecision,
)
from marketplace.services.order_service import OrderService
from marketplace.services.order_state_machine import allowed_actions


router = APIRouter(tags=["Orders"])


def _actions_for(order: Order) -> List[str]:
    return [action.value for action in allowed_actions(order.status)]


def _build_order_response(order: Order) -> OrderResponse:
    """Build OrderResponse from Order model."""
    response = OrderResponse.model_validate(order)
    return response.model_copy(update={"allowed_actions": _actions_for(order)})


def _build_order_detail_response(order: Order) -> OrderDetailResponse:
    """Build OrderDetailResponse with status history."""
    response = OrderDetailResponse.model_validate(order)
    return response.model_copy(update={
        "allowed_actions": _actions_for(order),
        "status_history": [StatusHistoryResponse.model_validate(h) for h in order.status_history],
    })


def _build_list_response(orders: List[Order], total: int, page: int, size: int) -> OrderListResponse:
    return OrderListResponse(
        items=[_build_order_response(o) for o in orders],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


# ==================== CHECKOUT ====================

@router.post(
    "",
    response_model=OrderDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_order(
    data: OrderCreate,
    db: DB,
    actor_id: CurrentActor,
):
    """
    Place an order with one store.
    Stock is reserved and prices are frozen at this moment.
    """
    service = OrderService(db)
    order = await service.create_order(data, buyer_id=actor_id)
    return _build_order_detail_response(order)


# ==================== QUERIES ====================

@router.get(
    "",
    response_model=OrderListResponse,
)
async def list_my_orders(
    db: DB,
    actor_id: CurrentActor,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
):
    """Get the caller's orders as a buyer, newest first."""
    service = OrderService(db)
    orders, total = await service.get_orders(
        buyer_id=actor_id,
        status=order_status,
        skip=(page - 1) * size,
        limit=size,
    )
    return _build_list_response(orders, total, page, size)


@router.get(
    "/count",
    response_model=OrderCountResponse,
)
async def count_my_orders(
    db: DB,
    actor_id: CurrentActor,
):
    """Dashboard counters for the caller's orders."""
    service = OrderService(db)
    counts = await service.count_by_status(actor_id)
    return OrderCountResponse(**counts)


@router.get(
    "/payment-methods",
    response_model=PaymentMethodListResponse,
)
async def list_payment_methods():
    """Payment methods accepted at checkout and payment."""
    return PaymentMethodListResponse(
        methods=dict(settings.PAYMENT_METHODS),
        default=settings.DEFAULT_PAYMENT_METHOD,
    )


@router.get(
    "/status/{order_status}",
    response_model=OrderListResponse,
)
async def list_orders_by_status(
    order_status: OrderStatus,
    db: DB,
    actor_id: CurrentActor,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
):
    """
    Orders in one status.
    Administrators see every order; everyone else sees their own.
    """
    service = OrderService(db)
    buyer_id = None if await service.is_admin(actor_id) else actor_id
    orders, total = await service.get_orders(
        buyer_id=buyer_id,
        status=order_status,
        skip=(page - 1) * size,
        limit=size,
    )
    return _build_list_response(orders, total, page, size)


@router.get(
    "/number/{order_number}",
    response_model=OrderDetailResponse,
)
async def get_order_by_number(
    order_number: str,
    db: DB,
    actor_id: CurrentActor,
):
    """Get order details by order number."""
    service = OrderService(db)
    order = await service.get_order_by_number(order_number)

    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found"
        )

    await service.ensure_can_view(order, actor_id)
    return _build_order_detail_response(order)


@router.get(
    "/store/{store_id}",
    response_model=OrderListResponse,
)
async def list_store_orders(
    store_id: uuid.UUID,
    db: DB,
    actor_id: CurrentActor,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
):
    """Orders placed with a store. Store owner or administrator."""
    service = OrderService(db)
    await service.ensure_store_access(store_id, actor_id)
    orders, total = await service.get_orders(
        store_id=store_id,
        status=order_status,
        skip=(page - 1) * size,
        limit=size,
    )
    return _build_list_response(orders, total, page, size)


@router.get(
    "/store/{store_id}/stats",
    response_model=StoreOrderStats,
)
async def get_store_stats(
    store_id: uuid.UUID,
    db: DB,
    actor_id: CurrentActor,
):
    """Order totals per status for a store."""
    service = OrderService(db)
    await service.ensure_store_access(store_id, actor_id)
    stats = await service.get_store_stats(store_id)
    return StoreOrderStats(**stats)


@router.get(
    "/{order_id}",
    response_model=OrderDetailResponse,
)
async def get_order(
    order_id: uuid.UUID,
    db: DB,
    actor_id: CurrentActor,
):
    """Get order details by ID."""
    service = OrderService(db)
    order = await service.get_order_by_id(order_id, include_all=True)

    if not order:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Order not found"
        )

    await service.ensure_can_view(order, actor_id)
    return _build_order_detail_response(order)


# ==================== LIFECYCLE ====================

@router.post(
    "/{order_id}/pay",
    response_model=OrderDetailResponse,
)
async def pay_order(
    order_id: uuid.UUID,
    db: DB,
    actor_id: CurrentActor,
    data: Optional[PaymentRequest] = None,
):
    """Record payment. Buyer only."""
    service = OrderService(db)
    order = await service.pay(
        order_id,
        actor_id,
        payment_method=data.payment_method if data else None,
    )
    return _build_order_detail_response(order)


@router.post(
    "/{order_id}/ship",
    response_model=OrderDetailResponse,
)
async def ship_order(
    order_id: uuid.UUID,
    db: DB,
    actor_id: CurrentActor,
):
    """Mark as shipped. Store owner or administrator."""
    service = OrderService(db)
    order = await service.ship(order_id, actor_id)
    return _build_order_detail_response(order)


@router.post(
    "/{order_id}/receive",
    response_model=OrderDetailResponse,
)
async def receive_order(
    order_id: uuid.UUID,
    db: DB,
    actor_id: CurrentActor,
):
    """Confirm receipt. Buyer only."""
    service = OrderService(db)
    order = await service.receive(order_id, actor_id)
    return _build_order_detail_response(order)


@router.post(
    "/{order_id}/cancel",
    response_model=OrderDetailResponse,
)
async def cancel_order(
    order_id: uuid.UUID,
    db: DB,
    actor_id: CurrentActor,
):
    """Cancel an unpaid order and release its stock. Buyer only."""
    service = OrderService(db)
    order = await service.cancel(order_id, actor_id)
    return _build_order_detail_response(order)


@router.post(
    "/{order_id}/refund",
    response_model=OrderDetailResponse,
)
async def request_refund(
    order_id: uuid.UUID,
    data: RefundRequest,
    db: DB,
    actor_id: CurrentActor,
):
    """Request a refund. Buyer only."""
    service = OrderService(db)
    order = await service.request_refund(order_id, actor_id, reason=data.reason)
    return _build_order_detail_response(order)


@router.post(
    "/{order_id}/refund/decision",
    response_model=OrderDetailResponse,
)
async def decide_refund(
    order_id: uuid.UUID,
    data: RefundDecision,
    db: DB,
    actor_id: CurrentActor,
):
    """Approve or reject a pending refund. Store owner or administrator."""
    service = OrderService(db)
    order = await service.decide_refund(order_id, actor_id, agree=data.agree)
    return _build_order_detail_response(order)

"""
Order management endpoints
"""

from fastapi import APIRouter, Depends, Query, Request
from typing import Optional
import logging
import math

from app.auth.auth_handler import get_current_user
from app.dependencies import get_order_service
from app.models.order import OrderState
from app.schemas.order import OrderCreate, OrderResponse, OrderListResponse
from app.services.order_service import OrderService, DEFAULT_LIMIT, DEFAULT_PAGE, normalize_pagination
from app.utils.rate_limit import limiter

logger = logging.getLogger(__name__)

# Every order route requires a valid bearer token
router = APIRouter(dependencies=[Depends(get_current_user)])


@router.post("", response_model=OrderResponse, status_code=201)
@limiter.limit("30/minute")
async def create_order(
    request: Request,
    order: OrderCreate,
    order_service: OrderService = Depends(get_order_service)
):
    """Create a new order in state CREATED"""
    return await order_service.create_order(
        lab=order.lab,
        patient=order.patient,
        customer=order.customer,
        services=order.services
    )


@router.get("", response_model=OrderListResponse)
@limiter.limit("60/minute")
async def get_orders(
    request: Request,
    page: int = Query(DEFAULT_PAGE, description="Page number, values below 1 are treated as 1"),
    limit: int = Query(DEFAULT_LIMIT, description="Items per page, clamped to 1-100"),
    state: Optional[OrderState] = Query(None, description="Filter by workflow state"),
    order_service: OrderService = Depends(get_order_service)
):
    """Get paginated list of active orders, newest first"""
    orders, total = await order_service.get_orders(page=page, limit=limit, state=state)

    page, limit = normalize_pagination(page, limit)
    return OrderListResponse(
        orders=[OrderResponse.from_orm(order) for order in orders],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit)
    )


@router.get("/{order_id}", response_model=OrderResponse)
@limiter.limit("60/minute")
async def get_order(
    request: Request,
    order_id: int,
    order_service: OrderService = Depends(get_order_service)
):
    """Get a specific active order by ID"""
    return await order_service.get_order(order_id)


@router.patch("/{order_id}/advance", response_model=OrderResponse)
@limiter.limit("30/minute")
async def advance_order(
    request: Request,
    order_id: int,
    order_service: OrderService = Depends(get_order_service)
):
    """Advance an order to the next workflow state"""
    return await order_service.advance_order_state(order_id)


@router.delete("/{order_id}", response_model=OrderResponse)
@limiter.limit("30/minute")
async def delete_order(
    request: Request,
    order_id: int,
    order_service: OrderService = Depends(get_order_service)
):
    """Soft-delete an order; it disappears from listings and can no longer advance"""
    return await order_service.delete_order(order_id)

"""
Order service: creation validation, listing and the workflow state machine
"""

from typing import Optional, Sequence
import logging
import math

from app.models.order import Order, OrderState, OrderStatus, ServiceStatus
from app.repositories.order_repository import OrderRepository
from app.schemas.order import ServiceCreate
from app.utils.error_handler import ConflictError, InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_PAGE_SIZE = 100
# Keeps the computed offset inside a 64-bit database integer
MAX_PAGE = 1_000_000

# None marks the terminal state
STATE_TRANSITIONS: dict[OrderState, Optional[OrderState]] = {
    OrderState.CREATED: OrderState.ANALYSIS,
    OrderState.ANALYSIS: OrderState.COMPLETED,
    OrderState.COMPLETED: None,
}


def normalize_pagination(page: Optional[int], limit: Optional[int]) -> tuple[int, int]:
    """Apply defaults, clamp non-positive values to 1 and cap both at their maximums"""
    page = min(max(DEFAULT_PAGE if page is None else page, 1), MAX_PAGE)
    limit = min(max(DEFAULT_LIMIT if limit is None else limit, 1), MAX_PAGE_SIZE)
    return page, limit


def next_state(state: OrderState) -> Optional[OrderState]:
    """Successor of ``state`` in the workflow, or None if it is final"""
    return STATE_TRANSITIONS[OrderState(state)]


class OrderService:
    """Order lifecycle and retrieval"""

    def __init__(self, orders: OrderRepository):
        self.orders = orders

    async def create_order(
        self,
        lab: str,
        patient: str,
        customer: str,
        services: Sequence[ServiceCreate]
    ) -> Order:
        """Validate and persist a new order in state CREATED"""
        if not services:
            raise InvalidInputError("Order must have at least one service")

        for service in services:
            if not math.isfinite(service.value) or not service.value > 0:
                raise InvalidInputError(f'Service "{service.name}" must have a value greater than zero')

        total_value = sum(service.value for service in services)
        if not total_value > 0:
            raise InvalidInputError("Order total value must be greater than zero")

        order = self.orders.create(
            lab=lab,
            patient=patient,
            customer=customer,
            services=[
                {
                    "name": service.name,
                    "value": service.value,
                    "status": ServiceStatus(service.status).value,
                }
                for service in services
            ],
            state=OrderState.CREATED.value,
            status=OrderStatus.ACTIVE.value,
        )

        logger.info(f"Created order with ID: {order.id} ({len(services)} services, total {total_value})")
        return order

    async def get_orders(
        self,
        page: Optional[int] = DEFAULT_PAGE,
        limit: Optional[int] = DEFAULT_LIMIT,
        state: Optional[OrderState] = None
    ) -> tuple[list[Order], int]:
        """Page of active orders, newest first, plus the unpaginated total"""
        page, limit = normalize_pagination(page, limit)
        skip = (page - 1) * limit

        filters = {"status": OrderStatus.ACTIVE.value}
        if state:
            filters["state"] = OrderState(state).value

        orders = self.orders.find(filters, skip=skip, limit=limit)
        total = self.orders.count(filters)
        return orders, total

    async def get_order(self, order_id: int) -> Order:
        """Active order by id; deleted orders are reported as missing"""
        order = self.orders.get_by_id(order_id)
        if not order or order.status != OrderStatus.ACTIVE.value:
            raise NotFoundError("Order not found")
        return order

    async def advance_order_state(self, order_id: int) -> Order:
        """Move an active order one step along CREATED -> ANALYSIS -> COMPLETED"""
        order = self.orders.get_by_id(order_id)
        if not order:
            raise NotFoundError("Order not found")

        if order.status != OrderStatus.ACTIVE.value:
            raise ConflictError("Cannot advance deleted order")

        current = OrderState(order.state)
        target = next_state(current)
        if target is None:
            raise ConflictError("Order is already in final state")

        swapped = self.orders.compare_and_swap(
            order_id,
            expected={"state": current.value, "status": OrderStatus.ACTIVE.value},
            changes={"state": target.value},
        )
        if not swapped:
            logger.warning(f"Order {order_id} changed while advancing from {current.value}")
            raise ConflictError("Order was modified concurrently, please retry")

        logger.info(f"Advanced order {order_id}: {current.value} -> {target.value}")
        return self.orders.get_by_id(order_id)

    async def delete_order(self, order_id: int) -> Order:
        """Soft delete: mark the order DELETED and leave its state untouched"""
        order = self.orders.get_by_id(order_id)
        if not order:
            raise NotFoundError("Order not found")

        if order.status == OrderStatus.DELETED.value:
            raise ConflictError("Order is already deleted")

        swapped = self.orders.compare_and_swap(
            order_id,
            expected={"status": OrderStatus.ACTIVE.value},
            changes={"status": OrderStatus.DELETED.value},
        )
        if not swapped:
            raise ConflictError("Order was modified concurrently, please retry")

        logger.info(f"Deleted order with ID: {order_id}")
        return self.orders.get_by_id(order_id)

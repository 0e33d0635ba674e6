"""
Unit tests for the order service: creation rules, listing and the workflow state machine
"""

from unittest.mock import MagicMock

import pytest

from app.models.order import Order, OrderState, OrderStatus, ServiceStatus
from app.repositories.order_repository import OrderRepository
from app.schemas.order import ServiceCreate
from app.services.order_service import OrderService, MAX_PAGE, STATE_TRANSITIONS, next_state
from app.utils.error_handler import ConflictError, InvalidInputError, NotFoundError


def make_services(*items):
    return [ServiceCreate(name=name, value=value) for name, value in items]


@pytest.fixture
def order_repository(db_session):
    return OrderRepository(db_session)


@pytest.fixture
def order_service(order_repository):
    return OrderService(order_repository)


async def create(order_service, *items, lab="Lab ABC"):
    return await order_service.create_order(
        lab=lab,
        patient="John Doe",
        customer="Hospital XYZ",
        services=make_services(*(items or [("Hemograma", 50)]))
    )


class TestCreateOrder:
    """Test cases for order creation"""

    @pytest.mark.asyncio
    async def test_create_order_starts_created_and_active(self, order_service):
        order = await create(order_service, ("Hemograma", 50), ("Glicemia", 25.5))

        assert order.id is not None
        assert order.state == OrderState.CREATED.value
        assert order.status == OrderStatus.ACTIVE.value
        assert order.lab == "Lab ABC"
        assert order.patient == "John Doe"
        assert order.customer == "Hospital XYZ"
        assert order.services == [
            {"name": "Hemograma", "value": 50, "status": ServiceStatus.PENDING.value},
            {"name": "Glicemia", "value": 25.5, "status": ServiceStatus.PENDING.value},
        ]
        assert order.created_at is not None

    @pytest.mark.asyncio
    async def test_service_status_is_kept_verbatim(self, order_service):
        order = await order_service.create_order(
            lab="Lab", patient="P", customer="C",
            services=[ServiceCreate(name="Urina", value=10, status=ServiceStatus.DONE)]
        )
        assert order.services[0]["status"] == "DONE"

    @pytest.mark.asyncio
    async def test_empty_services_rejected(self, order_service, order_repository):
        with pytest.raises(InvalidInputError, match="Order must have at least one service"):
            await order_service.create_order(lab="", patient="", customer="", services=[])
        assert order_repository.count({}) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("items, offender", [
        ([("Hemograma", 0)], "Hemograma"),
        ([("Hemograma", -10)], "Hemograma"),
        ([("Hemograma", 50), ("Glicemia", 0), ("Urina", -1)], "Glicemia"),
        # Aggregate is positive but a line item is not
        ([("Hemograma", 100), ("Desconto", -5)], "Desconto"),
    ])
    async def test_first_non_positive_service_is_reported(self, order_service, order_repository, items, offender):
        with pytest.raises(InvalidInputError) as exc_info:
            await create(order_service, *items)

        assert exc_info.value.message == f'Service "{offender}" must have a value greater than zero'
        assert order_repository.count({}) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    async def test_non_finite_value_is_rejected(self, order_service, order_repository, value):
        # Bypass schema validation to exercise the engine rule on its own
        services = [
            ServiceCreate(name="Hemograma", value=50),
            ServiceCreate.construct(name="X", value=value, status=ServiceStatus.PENDING),
        ]

        with pytest.raises(InvalidInputError) as exc_info:
            await order_service.create_order(lab="Lab", patient="P", customer="C", services=services)

        assert exc_info.value.message == 'Service "X" must have a value greater than zero'
        assert order_repository.count({}) == 0

    @pytest.mark.parametrize("value", [float("nan"), float("inf")])
    def test_schema_rejects_non_finite_value(self, value):
        with pytest.raises(ValueError):
            ServiceCreate(name="X", value=value)


class TestAdvanceOrderState:
    """Test cases for the CREATED -> ANALYSIS -> COMPLETED workflow"""

    def test_transition_table(self):
        assert STATE_TRANSITIONS == {
            OrderState.CREATED: OrderState.ANALYSIS,
            OrderState.ANALYSIS: OrderState.COMPLETED,
            OrderState.COMPLETED: None,
        }
        assert next_state("CREATED") == OrderState.ANALYSIS

    @pytest.mark.asyncio
    async def test_full_progression_then_final_state_error(self, order_service):
        order = await create(order_service)

        advanced = await order_service.advance_order_state(order.id)
        assert advanced.state == OrderState.ANALYSIS.value

        advanced = await order_service.advance_order_state(order.id)
        assert advanced.state == OrderState.COMPLETED.value

        with pytest.raises(ConflictError, match="Order is already in final state"):
            await order_service.advance_order_state(order.id)

    @pytest.mark.asyncio
    async def test_single_advance_does_not_skip(self, order_service, order_repository):
        order = await create(order_service)
        await order_service.advance_order_state(order.id)

        assert order_repository.get_by_id(order.id).state == OrderState.ANALYSIS.value

    @pytest.mark.asyncio
    async def test_missing_order(self, order_service):
        with pytest.raises(NotFoundError, match="Order not found"):
            await order_service.advance_order_state(999)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("state", list(OrderState))
    async def test_deleted_order_is_frozen(self, order_service, order_repository, db_session, state):
        order = await create(order_service)
        db_session.query(Order).filter(Order.id == order.id).update(
            {"state": state.value, "status": OrderStatus.DELETED.value}
        )
        db_session.commit()
        before = order_repository.get_by_id(order.id)
        updated_at = before.updated_at

        with pytest.raises(ConflictError, match="Cannot advance deleted order"):
            await order_service.advance_order_state(order.id)

        db_session.expire_all()
        after = order_repository.get_by_id(order.id)
        assert after.state == state.value
        assert after.status == OrderStatus.DELETED.value
        assert after.updated_at == updated_at

    @pytest.mark.asyncio
    async def test_concurrent_advance_is_rejected(self, db_session):
        class RacingOrderRepository(OrderRepository):
            def compare_and_swap(self, order_id, expected, changes):
                # A competing request wins the write first
                super().compare_and_swap(order_id, expected, changes)
                return super().compare_and_swap(order_id, expected, changes)

        order_service = OrderService(RacingOrderRepository(db_session))
        order = await create(order_service)

        with pytest.raises(ConflictError, match="modified concurrently"):
            await order_service.advance_order_state(order.id)

        # Only the winning write landed
        assert order_service.orders.get_by_id(order.id).state == OrderState.ANALYSIS.value


class TestDeleteOrder:
    """Test cases for soft deletion"""

    @pytest.mark.asyncio
    async def test_delete_keeps_state(self, order_service):
        order = await create(order_service)
        await order_service.advance_order_state(order.id)

        deleted = await order_service.delete_order(order.id)
        assert deleted.status == OrderStatus.DELETED.value
        assert deleted.state == OrderState.ANALYSIS.value

        with pytest.raises(ConflictError, match="Cannot advance deleted order"):
            await order_service.advance_order_state(order.id)

    @pytest.mark.asyncio
    async def test_delete_twice(self, order_service):
        order = await create(order_service)
        await order_service.delete_order(order.id)

        with pytest.raises(ConflictError, match="Order is already deleted"):
            await order_service.delete_order(order.id)

    @pytest.mark.asyncio
    async def test_deleted_order_is_not_found(self, order_service):
        order = await create(order_service)
        await order_service.delete_order(order.id)

        with pytest.raises(NotFoundError):
            await order_service.get_order(order.id)

        with pytest.raises(NotFoundError):
            await order_service.delete_order(12345)


class TestGetOrders:
    """Test cases for filtered pagination"""

    @pytest.mark.asyncio
    async def test_page_two_skips_first_page(self):
        repository = MagicMock(spec=OrderRepository)
        repository.find.return_value = []
        repository.count.return_value = 0

        await OrderService(repository).get_orders(page=2, limit=5)

        repository.find.assert_called_once_with({"status": "ACTIVE"}, skip=5, limit=5)
        repository.count.assert_called_once_with({"status": "ACTIVE"})

    @pytest.mark.asyncio
    async def test_defaults_and_clamping(self):
        repository = MagicMock(spec=OrderRepository)
        repository.find.return_value = []
        repository.count.return_value = 0
        order_service = OrderService(repository)

        await order_service.get_orders()
        repository.find.assert_called_with({"status": "ACTIVE"}, skip=0, limit=10)

        await order_service.get_orders(page=0, limit=-3)
        repository.find.assert_called_with({"status": "ACTIVE"}, skip=0, limit=1)

        await order_service.get_orders(page=1, limit=1000)
        repository.find.assert_called_with({"status": "ACTIVE"}, skip=0, limit=100)

    @pytest.mark.asyncio
    async def test_huge_page_is_capped(self):
        repository = MagicMock(spec=OrderRepository)
        repository.find.return_value = []
        repository.count.return_value = 0

        await OrderService(repository).get_orders(page=99999999999999999999, limit=10)

        repository.find.assert_called_once_with({"status": "ACTIVE"}, skip=(MAX_PAGE - 1) * 10, limit=10)

    @pytest.mark.asyncio
    async def test_huge_page_returns_empty_page(self, order_service):
        await create(order_service)

        orders, total = await order_service.get_orders(page=10 ** 20, limit=100)
        assert orders == []
        assert total == 1

    @pytest.mark.asyncio
    async def test_state_filter_is_added(self):
        repository = MagicMock(spec=OrderRepository)
        repository.find.return_value = []
        repository.count.return_value = 0

        await OrderService(repository).get_orders(state=OrderState.ANALYSIS)

        repository.find.assert_called_once_with(
            {"status": "ACTIVE", "state": "ANALYSIS"}, skip=0, limit=10
        )

    @pytest.mark.asyncio
    async def test_deleted_orders_never_listed(self, order_service):
        kept = await create(order_service, lab="Kept")
        removed = await create(order_service, lab="Removed")
        await order_service.delete_order(removed.id)

        orders, total = await order_service.get_orders()
        assert total == 1
        assert [order.id for order in orders] == [kept.id]

        orders, total = await order_service.get_orders(state=OrderState.CREATED)
        assert [order.id for order in orders] == [kept.id]

    @pytest.mark.asyncio
    async def test_newest_first_with_total_ignoring_pagination(self, order_service):
        created = [await create(order_service, lab=f"Lab {i}") for i in range(7)]

        orders, total = await order_service.get_orders(page=1, limit=5)
        assert total == 7
        assert [order.id for order in orders] == [order.id for order in reversed(created)][:5]

        orders, total = await order_service.get_orders(page=2, limit=5)
        assert total == 7
        assert [order.lab for order in orders] == ["Lab 1", "Lab 0"]

    @pytest.mark.asyncio
    async def test_state_filter_matches_exactly(self, order_service):
        first = await create(order_service)
        await create(order_service)
        await order_service.advance_order_state(first.id)

        orders, total = await order_service.get_orders(state=OrderState.ANALYSIS)
        assert total == 1
        assert orders[0].id == first.id

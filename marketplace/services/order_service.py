from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone
from decimal import Decimal
import uuid
import logging

from sqlalchemy import select, update, func, and_
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from marketplace.config import settings
from marketplace.core.exceptions import (
    OrderLifecycleError,
    NotFoundError,
    UnauthorizedError,
    InvalidStateError,
    InsufficientStockError,
    OrderNumberConflictError,
)
from marketplace.models.order import Order, OrderStatus, OrderStatusHistory
from marketplace.models.store import Store
from marketplace.models.user import User
from marketplace.schemas.order import OrderCreate
from marketplace.schemas.snapshot import LineItemSnapshot
from marketplace.services.address_service import AddressService
from marketplace.services.cart_service import CartService
from marketplace.services.catalog_service import CatalogService
from marketplace.services.inventory_service import InventoryService
from marketplace.services.order_number_service import OrderNumberGenerator
from marketplace.services.order_state_machine import (
    OrderAction,
    ACTION_LABELS,
    resolve_transition,
)

logger = logging.getLogger(__name__)


class OrderService:
    """
    Service for the order lifecycle: checkout and every status transition.

    Each write operation is one database transaction that is committed on
    success and rolled back on any error, so a failed checkout leaves no
    reservation behind and a failed transition changes nothing.
    """

    def __init__(
        self,
        db: AsyncSession,
        number_generator: Optional[OrderNumberGenerator] = None,
    ):
        self.db = db
        self.number_generator = number_generator or OrderNumberGenerator()
        self.catalog = CatalogService(db)
        self.inventory = InventoryService(db)
        self.addresses = AddressService(db)
        self.cart = CartService(db)

    # ==================== QUERIES ====================

    async def get_order_by_id(
        self,
        order_id: uuid.UUID,
        include_all: bool = False
    ) -> Optional[Order]:
        """Get order by ID, always reloading the row from the database."""
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )

        if include_all:
            stmt = stmt.options(
                selectinload(Order.buyer),
                selectinload(Order.store),
                selectinload(Order.status_history),
            )

        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_order_by_number(self, order_number: str) -> Optional[Order]:
        """Get order by order number."""
        stmt = (
            select(Order)
            .options(selectinload(Order.status_history))
            .where(Order.order_number == order_number)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_orders(
        self,
        buyer_id: Optional[uuid.UUID] = None,
        store_id: Optional[uuid.UUID] = None,
        status: Optional[OrderStatus] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        skip: int = 0,
        limit: Optional[int] = 20,
        sort_order: str = "desc"
    ) -> Tuple[List[Order], int]:
        """Get paginated orders with filters, newest first by default. limit=None returns every match."""
        filters = []

        if buyer_id:
            filters.append(Order.buyer_id == buyer_id)

        if store_id:
            filters.append(Order.store_id == store_id)

        if status is not None:
            filters.append(Order.status == status)

        if date_from:
            filters.append(Order.created_at >= date_from)

        if date_to:
            filters.append(Order.created_at <= date_to)

        stmt = select(Order).execution_options(populate_existing=True)
        count_stmt = select(func.count(Order.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0

        if sort_order == "desc":
            stmt = stmt.order_by(Order.created_at.desc(), Order.order_number.desc())
        else:
            stmt = stmt.order_by(Order.created_at.asc(), Order.order_number.asc())

        stmt = stmt.offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        orders = result.scalars().unique().all()

        return list(orders), total

    async def list_by_buyer(
        self,
        buyer_id: uuid.UUID,
        status: Optional[OrderStatus] = None,
    ) -> List[Order]:
        orders, _ = await self.get_orders(buyer_id=buyer_id, status=status, limit=None)
        return orders

    async def list_by_store(
        self,
        store_id: uuid.UUID,
        status: Optional[OrderStatus] = None,
    ) -> List[Order]:
        orders, _ = await self.get_orders(store_id=store_id, status=status, limit=None)
        return orders

    async def list_by_status(self, status: OrderStatus) -> List[Order]:
        orders, _ = await self.get_orders(status=status, limit=None)
        return orders

    async def count_by_status(self, buyer_id: uuid.UUID) -> Dict[str, int]:
        """Order counters for the buyer's dashboard."""
        stmt = (
            select(Order.status, func.count(Order.id))
            .where(Order.buyer_id == buyer_id)
            .group_by(Order.status)
        )
        counts = {OrderStatus(row[0]): row[1] for row in (await self.db.execute(stmt)).all()}

        return {
            "unpaid": counts.get(OrderStatus.UNPAID, 0),
            "to_ship": counts.get(OrderStatus.PAID, 0),
            "to_receive": counts.get(OrderStatus.SHIPPED, 0),
            "completed": counts.get(OrderStatus.COMPLETED, 0),
            "refund_pending": counts.get(OrderStatus.REFUND_PENDING, 0),
        }

    async def get_store_stats(self, store_id: uuid.UUID) -> Dict[str, Any]:
        """Order totals per status for one store, plus revenue of completed orders."""
        stmt = (
            select(Order.status, func.count(Order.id))
            .where(Order.store_id == store_id)
            .group_by(Order.status)
        )
        by_status = {
            OrderStatus(row[0]).name: row[1]
            for row in (await self.db.execute(stmt)).all()
        }

        revenue_stmt = select(func.sum(Order.total_amount)).where(
            Order.store_id == store_id,
            Order.status == OrderStatus.COMPLETED,
        )
        revenue = (await self.db.execute(revenue_stmt)).scalar()

        return {
            "store_id": store_id,
            "total_orders": sum(by_status.values()),
            "by_status": by_status,
            "completed_revenue": Decimal(str(revenue)) if revenue is not None else Decimal("0"),
        }

    # ==================== ACCESS CHECKS ====================

    async def is_admin(self, actor_id: uuid.UUID) -> bool:
        user = await self.db.get(User, actor_id)
        return bool(user and user.is_admin)

    async def _is_store_operator(self, store_id: uuid.UUID, actor_id: uuid.UUID) -> bool:
        """Store owner or ADMIN."""
        store = await self.db.get(Store, store_id)
        if store is not None and store.owner_id == actor_id:
            return True
        return await self.is_admin(actor_id)

    async def ensure_can_view(self, order: Order, actor_id: uuid.UUID) -> None:
        """Buyer, store owner or ADMIN may read an order."""
        if order.buyer_id == actor_id:
            return
        if await self._is_store_operator(order.store_id, actor_id):
            return
        raise UnauthorizedError(
            "Not allowed to view this order",
            details={"order_id": str(order.id)},
        )

    async def ensure_store_access(self, store_id: uuid.UUID, actor_id: uuid.UUID) -> Store:
        store = await self.db.get(Store, store_id)
        if store is None:
            raise NotFoundError("Store not found", details={"store_id": str(store_id)})
        if store.owner_id != actor_id and not await self.is_admin(actor_id):
            raise UnauthorizedError(
                "Not allowed to access this store's orders",
                details={"store_id": str(store_id)},
            )
        return store

    # ==================== CHECKOUT ====================

    async def create_order(self, data: OrderCreate, buyer_id: uuid.UUID) -> Order:
        """
        Place an order with one store.

        For every line, in request order: the product must exist, be listed,
        belong to data.store_id, and have its quantity reserved. Prices are
        frozen from the catalog at this point. Any failure rolls back the
        whole transaction, including reservations already made.
        """
        try:
            if await self.db.get(User, buyer_id) is None:
                raise NotFoundError("Buyer not found", details={"buyer_id": str(buyer_id)})
            if await self.db.get(Store, data.store_id) is None:
                raise NotFoundError("Store not found", details={"store_id": str(data.store_id)})

            line_items: List[LineItemSnapshot] = []
            for item_data in data.items:
                product = await self.catalog.lookup(item_data.product_id)
                if product is None:
                    raise NotFoundError(
                        f"Product {item_data.product_id} not found",
                        details={"product_id": str(item_data.product_id)},
                    )
                if not product.is_listed:
                    raise InvalidStateError(
                        f"Product '{product.name}' listing removed",
                        details={"product_id": str(product.id)},
                    )
                if product.store_id != data.store_id:
                    raise InvalidStateError(
                        f"Product '{product.name}' is not sold by this store",
                        details={"product_id": str(product.id), "store_id": str(data.store_id)},
                    )

                if not await self.inventory.reserve(product.id, item_data.quantity):
                    raise InsufficientStockError(
                        f"Insufficient stock for '{product.name}'",
                        details={"product_id": str(product.id), "requested": item_data.quantity},
                    )

                line_items.append(LineItemSnapshot.capture(
                    product_id=product.id,
                    product_name=product.name,
                    unit_price=product.price,
                    quantity=item_data.quantity,
                    specification=item_data.specification,
                ))

            total_amount = sum((line.line_total for line in line_items), Decimal("0"))
            shipping_snapshot = await self.addresses.resolve(buyer_id, data.address_id)

            order = await self._insert_order(
                buyer_id=buyer_id,
                store_id=data.store_id,
                line_items=line_items,
                total_amount=total_amount,
                shipping_snapshot=shipping_snapshot,
                payment_method=data.payment_method or settings.DEFAULT_PAYMENT_METHOD,
                status=OrderStatus.UNPAID,
                remark=data.remark,
            )

            status_history = OrderStatusHistory(
                order_id=order.id,
                from_status=None,
                to_status=OrderStatus.UNPAID,
                changed_by=buyer_id,
                notes="Order created",
            )
            self.db.add(status_history)

            await self.db.commit()

        except OrderLifecycleError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error creating order for buyer {buyer_id}: {e}")
            raise
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Order {order.order_number} created for buyer {buyer_id}: "
            f"{len(line_items)} lines, total {total_amount}"
        )

        # Cart cleanup is best-effort; the order is already committed
        try:
            await self.cart.clear_purchased(buyer_id, [line.product_id for line in line_items])
        except Exception as e:
            await self.db.rollback()
            logger.warning(f"Failed to clear cart for order {order.order_number}: {str(e)}")

        return self._detach(await self.get_order_by_id(order.id, include_all=True))

    async def _insert_order(self, **values) -> Order:
        """
        Insert the order under a fresh order number.

        Each attempt runs in a SAVEPOINT so a unique violation on
        order_number only discards that attempt.
        """
        max_attempts = settings.ORDER_NUMBER_MAX_ATTEMPTS

        for attempt in range(1, max_attempts + 1):
            candidate = self.number_generator.next_number()
            order = Order(id=uuid.uuid4(), order_number=candidate, **values)
            try:
                async with self.db.begin_nested():
                    self.db.add(order)
                    await self.db.flush()
                return order
            except IntegrityError as e:
                if "order_number" not in str(e.orig):
                    raise
                logger.warning(
                    f"Order number {candidate} already taken "
                    f"(attempt {attempt}/{max_attempts}), retrying"
                )

        raise OrderNumberConflictError(
            f"Could not allocate an order number after {max_attempts} attempts",
            details={"attempts": max_attempts},
        )

    # ==================== LIFECYCLE TRANSITIONS ====================

    async def pay(
        self,
        order_id: uuid.UUID,
        actor_id: uuid.UUID,
        payment_method: Optional[str] = None,
    ) -> Order:
        """Record payment for an UNPAID order. Buyer only."""
        now = datetime.now(timezone.utc)

        def values(order: Order) -> dict:
            return {
                "payment_method": payment_method or order.payment_method,
                "payment_time": now,
            }

        return await self._apply(order_id, actor_id, OrderAction.PAY, values=values)

    async def ship(self, order_id: uuid.UUID, actor_id: uuid.UUID) -> Order:
        """Mark a PAID order as shipped. Store owner or ADMIN."""
        now = datetime.now(timezone.utc)
        return await self._apply(
            order_id,
            actor_id,
            OrderAction.SHIP,
            store_operator=True,
            values=lambda order: {"shipping_time": now},
        )

    async def receive(self, order_id: uuid.UUID, actor_id: uuid.UUID) -> Order:
        """Buyer confirms receipt of a SHIPPED order."""
        return await self._apply(order_id, actor_id, OrderAction.RECEIVE)

    async def cancel(self, order_id: uuid.UUID, actor_id: uuid.UUID) -> Order:
        """Cancel an UNPAID order and put its stock back. Buyer only."""
        return await self._apply(order_id, actor_id, OrderAction.CANCEL)

    async def request_refund(
        self,
        order_id: uuid.UUID,
        actor_id: uuid.UUID,
        reason: str,
    ) -> Order:
        """Ask for a refund on a PAID or SHIPPED order. Buyer only."""
        return await self._apply(
            order_id,
            actor_id,
            OrderAction.REQUEST_REFUND,
            values=lambda order: {"refund_reason": reason},
            notes=reason,
        )

    async def decide_refund(
        self,
        order_id: uuid.UUID,
        actor_id: uuid.UUID,
        agree: bool,
    ) -> Order:
        """
        Approve or reject a pending refund. Store owner or ADMIN.

        Approval restores the stock of every frozen line; rejection keeps
        the refund reason on the order.
        """
        action = OrderAction.APPROVE_REFUND if agree else OrderAction.REJECT_REFUND
        return await self._apply(order_id, actor_id, action, store_operator=True)

    async def _load_for_update(self, order_id: uuid.UUID) -> Optional[Order]:
        stmt = (
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def _apply(
        self,
        order_id: uuid.UUID,
        actor_id: uuid.UUID,
        action: OrderAction,
        store_operator: bool = False,
        values=None,
        notes: Optional[str] = None,
    ) -> Order:
        """
        Run one lifecycle transition.

        Checks run in a fixed order: the order must exist, the actor must be
        allowed, then the transition must be legal from the current status.
        """
        try:
            order = await self._load_for_update(order_id)
            if order is None:
                raise NotFoundError("Order not found", details={"order_id": str(order_id)})

            if store_operator:
                if not await self._is_store_operator(order.store_id, actor_id):
                    raise UnauthorizedError(
                        "Only the store owner or an administrator may do this",
                        details={"order_id": str(order_id), "action": action.value},
                    )
            elif order.buyer_id != actor_id:
                raise UnauthorizedError(
                    "Only the buyer may do this",
                    details={"order_id": str(order_id), "action": action.value},
                )

            from_status = OrderStatus(order.status)
            transition = resolve_transition(action, from_status)

            stmt = (
                update(Order)
                .where(Order.id == order.id, Order.status == from_status)
                .values(
                    status=transition.target,
                    updated_at=datetime.now(timezone.utc),
                    **(values(order) if values else {}),
                )
                .execution_options(synchronize_session=False)
            )
            result = await self.db.execute(stmt)
            if result.rowcount != 1:
                raise InvalidStateError(
                    f"Order {order.order_number} changed status concurrently; cannot {action.value}",
                    details={"order_id": str(order_id), "action": action.value},
                )

            if transition.releases_stock:
                await self._restore_inventory(order)

            self.db.add(OrderStatusHistory(
                order_id=order.id,
                from_status=from_status,
                to_status=transition.target,
                changed_by=actor_id,
                notes=notes or ACTION_LABELS[action],
            ))

            await self.db.commit()

        except OrderLifecycleError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error applying {action.value} to order {order_id}: {e}")
            raise
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Order {order.order_number}: {from_status.name} -> {transition.target.name} "
            f"({action.value} by {actor_id})"
        )
        return self._detach(await self.get_order_by_id(order_id, include_all=True))

    async def _restore_inventory(self, order: Order) -> None:
        """Release exactly the quantities frozen on the order's lines."""
        for line in order.line_items:
            await self.inventory.release(line.product_id, line.quantity)

        logger.info(f"Released stock for {len(order.line_items)} lines of order {order.order_number}")

    def _detach(self, order: Order) -> Order:
        """
        Hand the caller a fully loaded order that no later rollback on this
        session can expire.
        """
        for entry in order.status_history:
            self.db.expunge(entry)
        self.db.expunge(order)
        return order

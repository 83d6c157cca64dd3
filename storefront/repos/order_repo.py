# storefront/repos/order_repo.py
from datetime import datetime, timezone
from typing import Iterable, List, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.order import OrderModel, OrderSequenceModel
from storefront.domain.schemas import OrderFilter

SORT_COLUMNS = {
    "created_at": OrderModel.created_at,
    "total": OrderModel.total,
    "status": OrderModel.status,
}


class OrderRepo:
    def __init__(self, db: Session):
        self.db = db

    def add_order(self, order: OrderModel) -> OrderModel:
        self.db.add(order)
        self.db.flush()
        return order

    def get_order(self, order_id: int) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel).where(OrderModel.id == order_id).options(selectinload(OrderModel.items))
        ).scalar_one_or_none()

    def get_order_by_number(self, order_number: str) -> OrderModel | None:
        return self.db.execute(
            select(OrderModel)
            .where(OrderModel.order_number == order_number)
            .options(selectinload(OrderModel.items))
        ).scalar_one_or_none()

    def next_sequence(self, day: str) -> int:
        """
        Atomically bump the counter for `day` and return the new value.

        The UPDATE holds the counter row until the surrounding transaction ends,
        so concurrent orders on the same day are numbered one after another.
        The first order of a day inserts the row; if two requests race on that
        insert, one gets an IntegrityError and is retried by the caller.
        """
        result = self.db.execute(
            update(OrderSequenceModel)
            .where(OrderSequenceModel.day == day)
            .values(last_value=OrderSequenceModel.last_value + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            self.db.add(OrderSequenceModel(day=day, last_value=1))
            self.db.flush()
            return 1

        return self.db.execute(
            select(OrderSequenceModel.last_value).where(OrderSequenceModel.day == day)
        ).scalar_one()

    def transition_status(
        self,
        order_id: int,
        from_statuses: Iterable[str],
        to_status: str,
        notes: str | None,
    ) -> int:
        # compare-and-set on the status column; 0 rows means the order moved on
        result = self.db.execute(
            update(OrderModel)
            .where(OrderModel.id == order_id, OrderModel.status.in_(list(from_statuses)))
            .values(status=to_status, notes=notes, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def find_orders(
        self,
        filters: OrderFilter,
        sort: str,
        descending: bool,
        offset: int,
        limit: int,
    ) -> Tuple[List[OrderModel], int]:
        stmt = select(OrderModel)

        if filters.user_id:
            stmt = stmt.where(OrderModel.user_id == filters.user_id)
        if filters.status:
            stmt = stmt.where(OrderModel.status == filters.status.value)
        if filters.start_date:
            stmt = stmt.where(OrderModel.created_at >= filters.start_date)
        if filters.end_date:
            stmt = stmt.where(OrderModel.created_at <= filters.end_date)
        if filters.min_amount is not None:
            stmt = stmt.where(OrderModel.total >= filters.min_amount)
        if filters.max_amount is not None:
            stmt = stmt.where(OrderModel.total <= filters.max_amount)

        total = self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()

        column = SORT_COLUMNS[sort]
        ordering = column.desc() if descending else column.asc()
        orders = (
            self.db.execute(
                stmt.options(selectinload(OrderModel.items))
                .order_by(ordering, OrderModel.id.desc() if descending else OrderModel.id.asc())
                .offset(offset)
                .limit(limit)
            )
            .scalars()
            .all()
        )
        return list(orders), total

    def count_by_status(self, statuses: Iterable[str] | None = None) -> int:
        stmt = select(func.count(OrderModel.id))
        if statuses is not None:
            stmt = stmt.where(OrderModel.status.in_(list(statuses)))
        return self.db.execute(stmt).scalar_one()

    def revenue(self, exclude: Iterable[str], since: datetime | None = None, until: datetime | None = None):
        """(count, sum, avg) of order totals, skipping the excluded statuses."""
        stmt = select(
            func.count(OrderModel.id),
            func.coalesce(func.sum(OrderModel.total), 0),
            func.avg(OrderModel.total),
        ).where(OrderModel.status.not_in(list(exclude)))
        if since is not None:
            stmt = stmt.where(OrderModel.created_at >= since)
        if until is not None:
            stmt = stmt.where(OrderModel.created_at < until)
        return self.db.execute(stmt).one()

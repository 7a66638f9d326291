# showbook/infrastructure/repositories/show_repository.py

from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session
from sqlalchemy import select

from showbook.infrastructure.db.models import Show
from showbook.domain.exceptions import ShowNotFoundOrStartedError


class ShowRepository:

    def __init__(self, db: Session):
        self.db = db

    def lock_for_update(self, show_id: str) -> Show | None:
        """
        SELECT ... FOR UPDATE
        Serializes every booking transaction on this show until commit.
        """

        stmt = (
            select(Show)
            .where(Show.id == show_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

        return self.db.execute(stmt).scalar_one_or_none()

    def lock_show(self, show_id: str, now: datetime) -> Show:
        show = self.lock_for_update(show_id)

        if not show or show.start_time <= now:
            raise ShowNotFoundOrStartedError(show_id)

        return show

    def get_by_id(self, show_id: str) -> Show | None:
        stmt = select(Show).where(Show.id == show_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_shows(self, starting_after: datetime | None = None) -> list[Show]:
        stmt = select(Show).order_by(Show.start_time, Show.name)
        if starting_after is not None:
            stmt = stmt.where(Show.start_time > starting_after)
        return list(self.db.execute(stmt).scalars().all())

    def create_show(
        self,
        name: str,
        start_time: datetime,
        end_time: datetime,
        total_seats: int,
        price: Decimal,
        description: str | None = None,
    ) -> Show:
        show = Show(
            name=name,
            description=description,
            start_time=start_time,
            end_time=end_time,
            total_seats=total_seats,
            price=price,
        )
        self.db.add(show)
        self.db.flush()
        return show

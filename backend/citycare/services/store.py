"""
Complaint record store.

Thin async repository over the complaints table.  Every method translates
SQLAlchemy failures into the domain errors in citycare.core.errors so the
services above it never see driver exceptions.
"""
import logging
import uuid
from collections import Counter
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

from fastapi import Depends
from sqlalchemy import ColumnElement, delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from citycare.core.db import get_db
from citycare.core.errors import (
    ConcurrentModification,
    DuplicateError,
    InvalidIdentifier,
    NotFound,
    StorageError,
)
from citycare.models.complaint import Complaint

logger = logging.getLogger(__name__)

IMMUTABLE_COLUMNS = frozenset({"id", "owner_id", "registration_number", "created_at", "version"})


def parse_id(raw: str | uuid.UUID) -> uuid.UUID:
    if isinstance(raw, uuid.UUID):
        return raw
    try:
        return uuid.UUID(str(raw))
    except (ValueError, AttributeError) as exc:
        raise InvalidIdentifier(f"Invalid complaint ID: {raw}") from exc


class ComplaintStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _commit(self) -> None:
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            logger.warning("Integrity error on complaints: %s", exc.orig)
            if "unique" in str(exc.orig).lower():
                raise DuplicateError() from exc
            raise StorageError() from exc
        except StaleDataError as exc:
            await self.session.rollback()
            raise ConcurrentModification() from exc
        except SQLAlchemyError as exc:
            await self.session.rollback()
            logger.error("Complaint store commit failed: %s", exc)
            raise StorageError() from exc

    async def insert(self, complaint: Complaint) -> Complaint:
        self.session.add(complaint)
        await self._commit()
        await self.session.refresh(complaint)
        return complaint

    async def get_by_id(self, complaint_id: str | uuid.UUID) -> Complaint:
        cid = parse_id(complaint_id)
        try:
            complaint = await self.session.get(Complaint, cid)
        except SQLAlchemyError as exc:
            logger.error("Complaint lookup %s failed: %s", cid, exc)
            raise StorageError() from exc
        if complaint is None:
            raise NotFound(f"No complaint found with ID: {cid}")
        return complaint

    async def get_many(self, ids: Sequence[uuid.UUID]) -> list[Complaint]:
        if not ids:
            return []
        try:
            result = await self.session.execute(select(Complaint).where(Complaint.id.in_(ids)))
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        return list(result.scalars().all())

    async def find(
        self,
        criteria: Sequence[ColumnElement[bool]],
        order_by: Sequence[Any],
        offset: int,
        limit: int,
    ) -> tuple[list[Complaint], int]:
        try:
            total = await self.count(criteria)
            result = await self.session.execute(
                select(Complaint).where(*criteria).order_by(*order_by).offset(offset).limit(limit)
            )
        except SQLAlchemyError as exc:
            logger.error("Complaint query failed: %s", exc)
            raise StorageError() from exc
        return list(result.scalars().all()), total

    async def save(self, complaint: Complaint) -> Complaint:
        """Flush pending attribute changes on a loaded complaint."""
        await self._commit()
        await self.session.refresh(complaint)
        return complaint

    async def save_all(self, complaints: Sequence[Complaint]) -> None:
        await self._commit()
        for complaint in complaints:
            await self.session.refresh(complaint)

    async def update_by_id(self, complaint_id: str | uuid.UUID, patch: dict[str, Any]) -> Complaint:
        complaint = await self.get_by_id(complaint_id)
        for column, value in patch.items():
            if column in IMMUTABLE_COLUMNS:
                continue
            setattr(complaint, column, value)
        return await self.save(complaint)

    async def delete_by_id(self, complaint_id: str | uuid.UUID) -> None:
        cid = parse_id(complaint_id)
        try:
            result = await self.session.execute(delete(Complaint).where(Complaint.id == cid))
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StorageError() from exc
        if result.rowcount == 0:
            await self.session.rollback()
            raise NotFound(f"No complaint found with ID: {cid}")
        await self._commit()

    async def count(self, criteria: Sequence[ColumnElement[bool]] = ()) -> int:
        try:
            result = await self.session.execute(
                select(func.count()).select_from(Complaint).where(*criteria)
            )
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        return result.scalar_one()

    async def count_by_group(
        self, criteria: Sequence[ColumnElement[bool]], column: Any
    ) -> dict[Any, int]:
        try:
            result = await self.session.execute(
                select(column, func.count()).where(*criteria).group_by(column)
            )
        except SQLAlchemyError as exc:
            raise StorageError() from exc
        return {key: count for key, count in result.all()}

    async def count_by_day(
        self,
        criteria: Sequence[ColumnElement[bool]],
        since: datetime,
        tz: ZoneInfo,
    ) -> list[tuple[str, int]]:
        """
        Creations per calendar day in *tz* since *since* (naive UTC),
        ascending.  Bucketing happens here so the result does not depend on
        the database's date functions.
        """
        try:
            result = await self.session.execute(
                select(Complaint.created_at).where(*criteria, Complaint.created_at >= since)
            )
        except SQLAlchemyError as exc:
            raise StorageError() from exc

        days = Counter(
            ts.replace(tzinfo=timezone.utc).astimezone(tz).strftime("%Y-%m-%d")
            for ts in result.scalars()
        )
        return sorted(days.items())


async def get_store(db: AsyncSession = Depends(get_db)) -> ComplaintStore:
    """FastAPI dependency: a store bound to the request's session."""
    return ComplaintStore(db)

from __future__ import annotations

import heapq
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..categories import CATEGORIES
from ..errors import StorageError
from ..models.assets import get_asset_model
from ..models.base import ensure_utc


@dataclass(frozen=True)
class AssetSummary:
    id: int
    name: str
    serial_number: str | None
    employee_name: str | None
    submitted_by: str | None
    created_at: datetime


@dataclass(frozen=True)
class HistoryEntry:
    category: str
    record: AssetSummary

    def to_dict(self) -> dict:
        return {
            "id": self.record.id,
            "category": self.category,
            "name": self.record.name,
            "serial_number": self.record.serial_number,
            "employee_name": self.record.employee_name,
            "submitted_by": self.record.submitted_by,
            "created_at": self.record.created_at.isoformat(),
        }


def _created_at(entry: HistoryEntry) -> datetime:
    return entry.record.created_at


class HistoryAggregator:
    """Merges the records of every category into one newest-first timeline."""

    def __init__(self, db: Session, categories: Iterable[str] = CATEGORIES):
        self.db = db
        self.categories = tuple(categories)

    def aggregate(self) -> list[HistoryEntry]:
        runs = [self._fetch(category) for category in self.categories]
        # Each run is already newest-first; ties keep registry order.
        return list(heapq.merge(*runs, key=_created_at, reverse=True))

    def _fetch(self, category: str) -> list[HistoryEntry]:
        model = get_asset_model(category)
        stmt = select(
            model.id,
            model.name,
            model.serial_number,
            model.employee_name,
            model.submitted_by,
            model.created_at,
        ).order_by(model.created_at.desc(), model.id.desc())
        try:
            rows = self.db.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise StorageError(operation="history_fetch", category=category) from exc
        return [
            HistoryEntry(
                category=category,
                record=AssetSummary(
                    id=row.id,
                    name=row.name,
                    serial_number=row.serial_number,
                    employee_name=row.employee_name,
                    submitted_by=row.submitted_by,
                    created_at=ensure_utc(row.created_at),
                ),
            )
            for row in rows
        ]

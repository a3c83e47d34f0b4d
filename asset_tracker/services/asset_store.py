from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import StorageError, ValidationError
from ..models.assets import AssetRecordMixin, get_asset_model
from ..models.base import utcnow
from .codes import qr_payload

logger = logging.getLogger(__name__)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class AssetStore:
    def __init__(self, db: Session, codes, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.codes = codes
        self._clock = clock

    def create(
        self,
        category: str,
        name: str | None,
        serial_number: str | None = None,
        employee_name: str | None = None,
        *,
        submitted_by: str,
    ) -> AssetRecordMixin:
        model = get_asset_model(category)
        name = _clean(name)
        if not name:
            raise ValidationError("Name required")
        serial_number = _clean(serial_number)
        employee_name = _clean(employee_name)

        qr_code = self.codes.qr_data_url(qr_payload(name, category, serial_number, employee_name))
        barcode = self.codes.barcode_data_url(serial_number or name)

        now = self._clock()
        record = model(
            name=name,
            serial_number=serial_number,
            employee_name=employee_name,
            qr_code=qr_code,
            barcode=barcode,
            submitted_by=submitted_by,
            created_at=now,
            updated_at=now,
        )
        try:
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(operation="asset_create", category=category) from exc
        logger.info("Asset %s created in %s by %s", record.id, category, submitted_by)
        return record

    def list(self, category: str) -> list[AssetRecordMixin]:
        model = get_asset_model(category)
        try:
            return (
                self.db.query(model)
                .order_by(model.created_at.desc(), model.id.desc())
                .all()
            )
        except SQLAlchemyError as exc:
            raise StorageError(operation="asset_list", category=category) from exc

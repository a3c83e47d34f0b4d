"""Mapped classes for the per-category asset tables.

Every category owns a table with the same columns. The classes are generated
from the category registry, so a category name only ever reaches SQL as the
``__tablename__`` of a class that was built at import time.
"""

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import mapped_column

from ..categories import CATEGORIES, require_category
from .base import Base, utcnow


class AssetRecordMixin:
    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    name = mapped_column(String(256), nullable=False)
    serial_number = mapped_column(String(128), nullable=True)
    employee_name = mapped_column(String(256), nullable=True)
    qr_code = mapped_column(Text, nullable=True)
    barcode = mapped_column(Text, nullable=True)
    submitted_by = mapped_column(String(64), nullable=True)
    created_at = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.__tablename__,
            "name": self.name,
            "serial_number": self.serial_number,
            "employee_name": self.employee_name,
            "qr_code": self.qr_code,
            "barcode": self.barcode,
            "submitted_by": self.submitted_by,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


def _class_name(category: str) -> str:
    return "".join(part.title() for part in category.split("_")) + "Record"


def _build_model(category: str) -> type:
    return type(_class_name(category), (Base, AssetRecordMixin), {"__tablename__": category})


ASSET_MODELS: dict[str, type] = {category: _build_model(category) for category in CATEGORIES}


def get_asset_model(category: str) -> type:
    return ASSET_MODELS[require_category(category)]

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_principal
from ..database import get_db
from ..services.asset_store import AssetStore
from ..services.sessions import Principal
from .deps import get_code_generator
from .schemas import AssetCreateRequest

router = APIRouter(prefix="/assets", tags=["assets"])


@router.post("/{category}")
def create_asset(
    category: str,
    payload: Optional[AssetCreateRequest] = None,
    db: Session = Depends(get_db),
    codes=Depends(get_code_generator),
    principal: Principal = Depends(get_current_principal),
):
    payload = payload or AssetCreateRequest()
    record = AssetStore(db, codes).create(
        category,
        payload.name,
        payload.serial_number,
        payload.employee_name,
        submitted_by=principal.username,
    )
    return {"success": True, "data": record.to_dict()}


@router.get("/{category}")
def list_assets(
    category: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return [record.to_dict() for record in AssetStore(db, codes=None).list(category)]

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..auth import get_current_principal
from ..database import get_db
from ..errors import GenerationError
from ..services.history import HistoryAggregator
from ..services.sessions import Principal
from .deps import get_report_renderer

router = APIRouter(prefix="/history", tags=["history"])


@router.get("")
def get_history(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return [entry.to_dict() for entry in HistoryAggregator(db).aggregate()]


@router.get("/report")
def get_history_report(
    db: Session = Depends(get_db),
    renderer=Depends(get_report_renderer),
    principal: Principal = Depends(get_current_principal),
):
    entries = HistoryAggregator(db).aggregate()
    try:
        pdf = renderer.render(entries)
    except Exception as exc:
        raise GenerationError("Could not generate report.", kind="report") from exc
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": "attachment; filename=history.pdf"},
    )

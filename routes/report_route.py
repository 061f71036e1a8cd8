from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from controllers.report_controller import generate_report

router = APIRouter(prefix="/api")


class ReportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    session_detail: Optional[Dict[str, Any]] = Field(default=None, alias="sessionDetail")
    messages: Optional[List[Any]] = None


@router.post("/travel-report")
async def post_travel_report(request: Request, payload: ReportRequest):
    """Generate and store a travel report for the given session."""
    try:
        result = await generate_report(request, payload.session_id, payload.session_detail, payload.messages)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return result

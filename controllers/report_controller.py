from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request

from services.openai.report_generator import TravelReportGenerator
from services.session_store import SessionStore
from utils.errors import SessionNotFoundError
from utils.settings import Settings


async def generate_report(
    request: Request,
    session_id: str,
    session_detail: Optional[Dict[str, Any]],
    messages: Optional[List[Any]],
) -> Dict[str, Any]:
    """Generate a travel report for a session and persist it.

    The session's stored detail and history are used when the client does
    not send its own. Any prior report is overwritten.

    Args:
        request: FastAPI Request (used to access shared clients/state).
        session_id: Session the report belongs to.
        session_detail: Optional agent/session info supplied by the client.
        messages: Optional message log supplied by the client.

    Returns:
        The report as a JSON-ready dict.

    Raises:
        HTTPException(404) if the session is unknown.
    """
    store: SessionStore = request.app.state.session_store
    settings: Settings = request.app.state.settings

    try:
        session = await store.load_session(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc

    if not settings.openai_api_key:
        raise HTTPException(status_code=500, detail="API keys are not configured correctly.")

    detail = session_detail or {
        "notes": session.notes,
        "selectedAgent": session.selected_agent.to_dict() if session.selected_agent else None,
    }
    log = messages if messages is not None else [
        {"role": entry.role, "text": entry.text} for entry in session.conversation
    ]

    generator = TravelReportGenerator(
        request.app.state.openai_client, model=settings.report_model, timeout=settings.model_timeout
    )
    report = (await generator.generate(detail, log)).to_dict()

    await store.save_report(session_id, report)
    return report

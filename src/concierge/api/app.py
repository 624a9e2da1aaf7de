"""
Core API backend for Concierge.

It exposes the following endpoints:
- **GET /health**  - liveness probe for health checks.
- **POST /sessions** - create a new session, returns a session ID.
- **GET /sessions** - list all active sessions.
- **DELETE /sessions/{id}** - forget a session and its history.
- **POST /agent**   - multi-turn interaction: {"message": "...", "session_id": "..."}
"""

import logging
from typing import List

from fastapi import (
    Depends,
    FastAPI,
    HTTPException,
)

from concierge.api.models import (
    MessageRequest,
    MessageResponse,
    SessionResponse,
    ToolResultModel,
)
from concierge.common import (
    AnsiColors,
    colored_print,
)
from concierge.config import settings
from concierge.core.errors import (
    SessionBusy,
    TransportError,
    UnexpectedToolLoop,
)
from concierge.core.orchestrator import TurnOrchestrator

logger = logging.getLogger(__name__)

app = FastAPI(title="Concierge API", version="0.1.0", description="Hotel concierge chat API")

_orchestrator: TurnOrchestrator | None = None


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------
def get_orchestrator() -> TurnOrchestrator:
    """Build the orchestrator on first use; tests override this dependency."""
    global _orchestrator  # pylint: disable=global-statement
    if _orchestrator is None:
        from concierge.service import (  # pylint: disable=import-outside-toplevel
            build_orchestrator,
        )

        _orchestrator = build_orchestrator()
    return _orchestrator


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health", summary="Health check")
async def health() -> dict[str, str]:
    """Return a simple liveness payload."""
    return {"status": "ok"}


@app.post("/sessions", response_model=SessionResponse, summary="Create a new session")
def create_session(orchestrator: TurnOrchestrator = Depends(get_orchestrator)) -> SessionResponse:
    """Create a new conversation session."""
    session = orchestrator.sessions.get_or_create()
    return SessionResponse(session_id=session.session_id)


@app.get("/sessions", response_model=List[str], summary="List active sessions")
def list_sessions(orchestrator: TurnOrchestrator = Depends(get_orchestrator)) -> List[str]:
    """List all active session IDs."""
    return orchestrator.sessions.list_ids()


@app.delete("/sessions/{session_id}", status_code=204, summary="Delete a session")
def delete_session(
    session_id: str, orchestrator: TurnOrchestrator = Depends(get_orchestrator)
) -> None:
    """Forget a session and its conversation history."""
    if not orchestrator.sessions.drop(session_id):
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    logger.info("Deleted session %s", session_id)


@app.post("/agent", response_model=MessageResponse, summary="Process a message")
def agent_endpoint(
    req: MessageRequest, orchestrator: TurnOrchestrator = Depends(get_orchestrator)
) -> MessageResponse:
    """Run one conversational turn for the message."""
    session_id = req.session_id or orchestrator.sessions.get_or_create().session_id

    try:
        outcome = orchestrator.run_turn(session_id, req.message)
    except SessionBusy as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (TransportError, UnexpectedToolLoop) as exc:
        logger.warning("Turn failed: %s", exc)
        raise HTTPException(
            status_code=502, detail="The assistant could not answer right now. Please retry."
        ) from exc

    return MessageResponse(
        reply=outcome.answer,
        tool_results=[
            ToolResultModel(name=r.name, content=r.content, failed=r.failed)
            for r in outcome.tool_results
        ]
        or None,
        sources=outcome.grounding.metadata if outcome.grounding else None,
        session_id=outcome.session_id,
    )


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in dev docker-compose).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting Concierge API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )
    logger.debug(
        "API settings: %s", settings.model_dump(exclude={"OPENAI_API_KEY", "ANTHROPIC_API_KEY"})
    )

    colored_print(f"Concierge API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)
    uvicorn.run(
        "concierge.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m concierge.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)

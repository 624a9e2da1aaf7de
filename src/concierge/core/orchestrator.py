"""
Turn orchestration for Concierge.

One turn walks a fixed state machine:

    START -> RETRIEVE -> CONTEXT_BUILT -> FIRST_MODEL_CALL
          -> ANSWER_READY                                        (direct answer)
          -> TOOLS_REQUESTED -> DISPATCH -> SECOND_MODEL_CALL -> ANSWER_READY
          -> DONE

The protocol never chains past one tool round-trip: the second model call is made without the
tool catalog.  Any failure terminates the turn (``FAILED``) and propagates to the caller.
"""

import logging
import threading
import uuid
from datetime import (
    datetime,
    timezone,
)
from enum import Enum
from typing import (
    Callable,
    Dict,
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from concierge.core.context import ConversationContext
from concierge.core.dispatcher import ToolDispatcher
from concierge.core.errors import (
    InvalidSequence,
    SessionBusy,
    UnexpectedToolLoop,
)
from concierge.core.gateway import ModelGateway
from concierge.core.retrieval import RetrievalAugmenter
from concierge.core.schema import (
    Message,
    ModelResponse,
    RetrievalMatch,
    ToolCallRequested,
    ToolResult,
)
from concierge.tools import ToolRegistry

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    """States of a single conversational turn."""

    START = "start"
    RETRIEVE = "retrieve"
    CONTEXT_BUILT = "context_built"
    FIRST_MODEL_CALL = "first_model_call"
    TOOLS_REQUESTED = "tools_requested"
    DISPATCH = "dispatch"
    SECOND_MODEL_CALL = "second_model_call"
    ANSWER_READY = "answer_ready"
    DONE = "done"
    FAILED = "failed"


class TurnOutcome(BaseModel):
    """What a completed turn produced (for logging / API responses)."""

    session_id: str
    answer: str
    states: List[TurnState] = Field(default_factory=list)
    grounding: Optional[RetrievalMatch] = None
    tool_results: List[ToolResult] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------
class Session:
    """A conversation: its own context plus a guard that admits one turn at a time."""

    def __init__(self, session_id: str, system_prompt: str | None = None) -> None:
        self.session_id = session_id
        self.context = ConversationContext(system_prompt=system_prompt)
        self.created_at = datetime.now(timezone.utc)
        self._busy = threading.Lock()

    def try_acquire(self) -> bool:
        return self._busy.acquire(blocking=False)

    def release(self) -> None:
        self._busy.release()


class SessionRegistry:
    """Thread-safe map of session id -> :class:`Session` (in-memory, not persisted)."""

    def __init__(self, system_prompt: str | None = None) -> None:
        self._system_prompt = system_prompt
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def get_or_create(self, session_id: str | None = None) -> Session:
        """Return the session for *session_id*, creating it (or a fresh id) when unknown."""
        with self._lock:
            if session_id and session_id in self._sessions:
                return self._sessions[session_id]
            new_id = session_id or str(uuid.uuid4())
            session = Session(new_id, system_prompt=self._system_prompt)
            self._sessions[new_id] = session
            logger.info("Created session %s", new_id)
            return session

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def list_ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions)

    def drop(self, session_id: str) -> bool:
        """Forget *session_id*; returns False when it was not registered."""
        with self._lock:
            return self._sessions.pop(session_id, None) is not None


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------
class TurnOrchestrator:
    """Sequences retrieval, model calls and tool dispatch into one turn."""

    def __init__(
        self,
        augmenter: RetrievalAugmenter,
        gateway: ModelGateway,
        dispatcher: ToolDispatcher,
        registry: ToolRegistry,
        sessions: SessionRegistry | None = None,
        strict_tool_loop: bool = False,
    ) -> None:
        self._augmenter = augmenter
        self._gateway = gateway
        self._dispatcher = dispatcher
        self._catalog = registry.definitions()  # static for the life of the process
        self.sessions = sessions or SessionRegistry()
        self.strict_tool_loop = strict_tool_loop

    def handle_turn(self, session_id: str, text: str) -> str:
        """Run one turn for *session_id* and return the answer text."""
        return self.run_turn(session_id, text).answer

    def run_turn(self, session_id: str, text: str) -> TurnOutcome:
        """
        Run one turn and return its full outcome.

        Raises
        ------
        ValueError
            If *text* is empty.
        SessionBusy
            If the session is already processing a turn.
        TransportError, UnexpectedToolLoop, InvalidSequence
            If the turn could not produce an answer.
        """
        if not text or not text.strip():
            raise ValueError("User message must not be empty.")

        session = self.sessions.get_or_create(session_id)
        if not session.try_acquire():
            logger.warning("Rejected concurrent turn on session %s", session.session_id)
            raise SessionBusy(session.session_id)
        try:
            return self._run(session, text)
        finally:
            session.release()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #
    def _run(self, session: Session, text: str) -> TurnOutcome:
        # The turn writes to a fork; the session adopts it only once the turn is done
        ctx = session.context.fork()
        states: List[TurnState] = [TurnState.START]
        enter: Callable[[TurnState], None] = states.append
        tool_results: List[ToolResult] = []

        try:
            enter(TurnState.RETRIEVE)
            grounding = self._augmenter.augment(text, ctx)

            ctx.append(Message.user(text))
            enter(TurnState.CONTEXT_BUILT)

            enter(TurnState.FIRST_MODEL_CALL)
            response = self._gateway.invoke(ctx, self._catalog)

            if isinstance(response, ToolCallRequested):
                enter(TurnState.TOOLS_REQUESTED)
                ctx.append(Message.assistant(response.text, tool_calls=response.calls))

                enter(TurnState.DISPATCH)
                tool_results = self._dispatcher.dispatch_all(response.calls)
                ctx.extend(Message.tool(r.tool_call_id, r.content) for r in tool_results)
                unanswered = ctx.pending_tool_calls() & {call.id for call in response.calls}
                if unanswered:
                    raise InvalidSequence(f"Tool calls left unanswered: {sorted(unanswered)}")

                enter(TurnState.SECOND_MODEL_CALL)
                answer = self._second_answer(self._gateway.invoke(ctx))
            else:
                answer = response.text

            enter(TurnState.ANSWER_READY)
            ctx.append(Message.assistant(answer))
            session.context = ctx
            enter(TurnState.DONE)
        except Exception:
            states.append(TurnState.FAILED)
            logger.exception(
                "Turn failed on session %s after %s", session.session_id, states[-2].value
            )
            raise

        logger.info(
            "Turn done on session %s (%s)",
            session.session_id,
            " -> ".join(state.value for state in states),
        )
        return TurnOutcome(
            session_id=session.session_id,
            answer=answer,
            states=states,
            grounding=grounding,
            tool_results=tool_results,
        )

    def _second_answer(self, response: ModelResponse) -> str:
        if not isinstance(response, ToolCallRequested):
            return response.text
        names = [call.name for call in response.calls]
        if self.strict_tool_loop or not response.text:
            raise UnexpectedToolLoop(f"Model requested tools again on the second call: {names}")
        logger.warning("Ignoring tool calls %s on second call; using accompanying text", names)
        return response.text

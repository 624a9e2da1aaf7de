"""Fetch grounding context for a turn and inject it ahead of the user's question."""

import logging
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Protocol,
)

from concierge.config import settings
from concierge.core.context import ConversationContext
from concierge.core.errors import RetrievalUnavailable
from concierge.core.schema import (
    Message,
    RetrievalMatch,
)

logger = logging.getLogger(__name__)

GROUNDING_TEMPLATE = "Answer the next question using the following information: {content}"


class Retriever(Protocol):
    """Similarity-search collaborator (see ``concierge.memory.vector_index``)."""

    def search(
        self, query: str, k: int = 1, where: Optional[Dict[str, Any]] = None
    ) -> List[RetrievalMatch]:
        """Return up to *k* matches, best first; empty list when nothing matches."""


class RetrievalAugmenter:
    """Issues exactly one similarity query per turn and appends a grounding message on a hit."""

    def __init__(
        self,
        retriever: Retriever,
        k: int | None = None,
        min_score: float | None = None,
    ) -> None:
        self._retriever = retriever
        self.k = k if k is not None else settings.RETRIEVAL_K
        self.min_score = min_score
        if self.k < 1:
            raise ValueError("k must be at least 1")

    def augment(self, query: str, context: ConversationContext) -> RetrievalMatch | None:
        """
        Query the index for *query* and, on a hit, append a grounding message to *context*.

        Returns the match that was injected, or *None* when nothing was injected.  An unavailable
        index is treated like an empty one.
        """
        try:
            matches = self._retriever.search(query, k=self.k)
        except RetrievalUnavailable as exc:
            logger.warning("Retrieval unavailable, continuing without grounding: %s", exc)
            return None

        if not matches:
            logger.debug("No grounding found for query")
            return None

        best = matches[0]
        if self.min_score is not None and best.score < self.min_score:
            logger.debug("Best match score %.3f below threshold %.3f", best.score, self.min_score)
            return None

        context.append(Message.assistant(GROUNDING_TEMPLATE.format(content=best.content)))
        logger.info("Injected grounding (score=%.3f, metadata=%s)", best.score, best.metadata)
        return best

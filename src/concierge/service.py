"""Wire the conversation core to its collaborators from ``settings``."""

import logging

from concierge.config import settings
from concierge.core.dispatcher import ToolDispatcher
from concierge.core.gateway import ModelGateway
from concierge.core.orchestrator import (
    SessionRegistry,
    TurnOrchestrator,
)
from concierge.core.retrieval import RetrievalAugmenter
from concierge.llm.transports import load_transport
from concierge.memory.record_store import (
    InMemoryRecordStore,
    MongoRecordStore,
    RecordStore,
)
from concierge.memory.vector_index import VectorIndex
from concierge.tools.hotel import (
    LogNotifier,
    Notifier,
    WebhookNotifier,
    build_hotel_registry,
)

logger = logging.getLogger(__name__)


def build_record_store() -> RecordStore:
    if settings.MONGO_URI:
        return MongoRecordStore(settings.MONGO_URI, settings.MONGO_DB, settings.BOOKING_COLLECTION)
    logger.warning("MONGO_URI not set; using an empty in-memory booking store")
    return InMemoryRecordStore()


def build_notifier() -> Notifier:
    if settings.RECEPTION_WEBHOOK_URL:
        return WebhookNotifier(settings.RECEPTION_WEBHOOK_URL)
    return LogNotifier()


def build_orchestrator() -> TurnOrchestrator:
    """
    Construct the orchestrator with the configured transport, index, record store and notifier.

    The vector index is expected to be populated already (see ``concierge.memory.bootstrap``).
    """
    registry = build_hotel_registry(build_record_store(), build_notifier())
    orchestrator = TurnOrchestrator(
        augmenter=RetrievalAugmenter(
            VectorIndex(), k=settings.RETRIEVAL_K, min_score=settings.RETRIEVAL_MIN_SCORE
        ),
        gateway=ModelGateway(load_transport(settings.TRANSPORT)),
        dispatcher=ToolDispatcher(registry, max_workers=settings.TOOL_WORKERS),
        registry=registry,
        sessions=SessionRegistry(system_prompt=settings.SYSTEM_PROMPT),
        strict_tool_loop=settings.STRICT_TOOL_LOOP,
    )
    logger.info("Orchestrator ready (transport=%s, tools=%s)", settings.TRANSPORT, registry.names())
    return orchestrator

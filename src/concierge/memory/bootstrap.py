"""
One-time, idempotent population of the vector index from the flat sources file.

The file is a JSON list of ``{"data": ..., "segment": str, "subsegment": str, "metadata": {...}}``
records.  This runs before the conversation core is constructed, never inside a turn.
"""

import hashlib
import json
import logging
from pathlib import Path
from typing import (
    Any,
    Dict,
    List,
)

from pydantic import (
    BaseModel,
    Field,
    TypeAdapter,
)

from concierge.memory.vector_index import VectorIndex

logger = logging.getLogger(__name__)


class SourceDocument(BaseModel):
    """One record of the sources file."""

    data: Any
    segment: str
    subsegment: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


def load_source_documents(path: str | Path) -> List[SourceDocument]:
    """Read and validate the sources file."""
    raw = Path(path).read_text(encoding="utf-8")
    return TypeAdapter(List[SourceDocument]).validate_json(raw)


def to_page_content(doc: SourceDocument) -> str:
    """Render a record as the text that gets embedded."""
    return f"[{doc.segment}][{doc.subsegment}] - {json.dumps(doc.data)}"


def _flatten_metadata(metadata: Dict[str, Any]) -> Dict[str, Any]:
    # Chroma only accepts scalar metadata values
    flat: Dict[str, Any] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        flat[key] = value if isinstance(value, (str, int, float, bool)) else json.dumps(value)
    return flat


def _doc_id(position: int, text: str) -> str:
    return hashlib.sha1(f"{position}:{text}".encode("utf-8")).hexdigest()


def seed_index(index: VectorIndex, path: str | Path) -> int:
    """
    Populate *index* from *path* unless it already holds documents.

    Returns the number of documents added (0 when the index was already populated).
    """
    existing = index.count()
    if existing:
        logger.info(
            "Index '%s' already holds %d documents; skipping", index.collection_name, existing
        )
        return 0

    docs = load_source_documents(path)
    if not docs:
        logger.warning("Sources file %s is empty; nothing to index", path)
        return 0

    texts = [to_page_content(doc) for doc in docs]
    logger.info("Creating index '%s' from %d source records", index.collection_name, len(docs))
    index.add_documents(
        ids=[_doc_id(i, text) for i, text in enumerate(texts)],
        texts=texts,
        metadatas=[_flatten_metadata(doc.metadata) for doc in docs],
    )
    return len(docs)

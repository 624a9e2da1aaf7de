"""
Thin wrapper around Chroma for storing & querying hotel information chunks.

Each source record is stored as one document:
  text     = "[segment][subsegment] - <json data>"
  metadata = the record's metadata (e.g. { "hotelName": ... })
"""

import logging
from typing import (
    Any,
    Dict,
    List,
    Optional,
    Sequence,
    cast,
)

import chromadb
from chromadb.api.types import EmbeddingFunction
from chromadb.utils import embedding_functions

from concierge.config import settings
from concierge.core.errors import RetrievalUnavailable
from concierge.core.schema import RetrievalMatch

logger = logging.getLogger(__name__)


class VectorIndex:
    """
    Chroma wrapper implementing the ``Retriever`` protocol.

    Pass *client* to use an existing Chroma client (e.g. ``chromadb.EphemeralClient()`` in tests);
    otherwise an ``HttpClient`` is opened against *host*/*port*.
    """

    def __init__(
        self,
        collection_name: str | None = None,
        host: str | None = None,
        port: int | None = None,
        client: Any = None,
        embedding_function: EmbeddingFunction | None = None,
    ):
        self._client = client or chromadb.HttpClient(
            host=host or settings.VECTOR_DB_HOST, port=port or settings.VECTOR_DB_PORT
        )
        self._embed_fn: EmbeddingFunction = embedding_function or (
            embedding_functions.SentenceTransformerEmbeddingFunction(
                model_name=settings.EMBED_MODEL
            )
        )
        self.collection_name = collection_name or settings.COLLECTION_NAME

        # Create or get the collection; cosine because relative importance of features matters
        # more than absolute magnitudes
        self._col = self._client.get_or_create_collection(
            name=self.collection_name,
            embedding_function=cast(EmbeddingFunction, self._embed_fn),
            metadata={"hnsw:space": "cosine"},
        )

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def add_documents(
        self,
        ids: Sequence[str],
        texts: Sequence[str],
        metadatas: Sequence[Dict[str, Any]] | None = None,
    ) -> None:
        """Add or upsert a batch of documents."""
        self._col.upsert(
            ids=list(ids),
            documents=list(texts),
            metadatas=[m or {"source": "sources"} for m in (metadatas or [{}] * len(ids))],
        )

    def search(
        self, query: str, k: int = 1, where: Optional[Dict[str, Any]] = None
    ) -> List[RetrievalMatch]:
        """Return top-k matches similar to *query*, best first."""
        try:
            res = self._col.query(
                query_texts=[query],
                n_results=k,
                where=where,
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Vector index query failed: %s", exc)
            raise RetrievalUnavailable(f"Vector index query failed: {exc}") from exc

        logger.debug("Index query results: '%s'", res)
        if not res or not res.get("documents") or not res["documents"][0]:
            return []

        documents = res["documents"][0]
        metadatas = (res.get("metadatas") or [[]])[0] or [None] * len(documents)
        distances = (res.get("distances") or [[]])[0] or [None] * len(documents)
        return [
            RetrievalMatch(
                content=doc,
                metadata=dict(meta or {}),
                score=1.0 - dist if dist is not None else 0.0,
            )
            for doc, meta, dist in zip(documents, metadatas, distances)
        ]

    # Convenience for bootstrap / admin
    def count(self) -> int:
        """Return number of documents in the collection."""
        return self._col.count()

"""Document retriever - score, rank and budget chunks for a query."""

import logging
import math
from dataclasses import dataclass, field
from typing import Protocol

from tecassist.db.repositories import CatalogRepository, ChunkStore, ChunkWithSource
from tecassist.docs.embeddings import EmbeddingClient, cosine_similarity
from tecassist.docs.query_analyzer import extract_keywords, fold, tokenize
from tecassist.errors import ValidationError
from tecassist.models.documents import ScoredChunk
from tecassist.utils.metrics import retrieval_chunks_returned

logger = logging.getLogger(__name__)

PHRASE_BONUS = 2.0
BIGRAM_BONUS = 0.5
TITLE_BONUS = 0.5

# Folded file-name fragments of listing-style documents (spreadsheets, catalogs)
FULL_SCAN_NAME_PATTERNS = (
    "planilha",
    "catalogo",
    "mapeamento",
    "lista",
    "inventario",
    "todas",
    "completo",
)


@dataclass(frozen=True)
class RetrievalScope:
    """Which documents a query may draw from.

    Catalog scope is the default; global scope is an explicit opt-in.
    """

    catalog_item_id: str | None = None
    document_ids: tuple[str, ...] | None = None
    is_global: bool = False

    @classmethod
    def for_catalog_item(cls, item_id: str) -> "RetrievalScope":
        return cls(catalog_item_id=item_id)

    @classmethod
    def for_documents(cls, document_ids: list[str]) -> "RetrievalScope":
        return cls(document_ids=tuple(document_ids))

    @classmethod
    def everything(cls) -> "RetrievalScope":
        return cls(is_global=True)


class RetrievalStrategy(Protocol):
    """Scores candidate chunks for a query."""

    name: str
    relevance_floor: float

    async def rank(
        self, store: ChunkStore, query: str, document_ids: list[str] | None
    ) -> list[ScoredChunk]:
        """Return scored candidates (unsorted, unfiltered)."""
        ...


@dataclass
class LexicalStrategy:
    """Term-count scoring with phrase and file-name bonuses.

    Scoring:
    - Each query keyword present in the chunk (accent/case-insensitive
      substring) adds 1
    - The whole query phrase present adds PHRASE_BONUS; each consecutive
      word pair of the query present adds BIGRAM_BONUS
    - Each keyword found in the document's file name adds TITLE_BONUS
    """

    relevance_floor: float = 0.0
    name: str = field(default="lexical", init=False)

    def score_chunk(self, query: str, keywords: list[str], content: str, file_name: str) -> float:
        text = fold(content)
        title = fold(file_name)
        folded_terms = [fold(k) for k in keywords]

        term_hits = sum(1 for term in folded_terms if term in text)
        if term_hits == 0:
            return 0.0

        score = float(term_hits)

        words = [fold(w) for w in tokenize(query)]
        if len(words) >= 2:
            if " ".join(words) in " ".join(fold(w) for w in tokenize(content)):
                score += PHRASE_BONUS
            for first, second in zip(words, words[1:]):
                if f"{first} {second}" in text:
                    score += BIGRAM_BONUS

        score += TITLE_BONUS * sum(1 for term in folded_terms if term in title)
        return score

    async def rank(
        self, store: ChunkStore, query: str, document_ids: list[str] | None
    ) -> list[ScoredChunk]:
        keywords = extract_keywords(query)
        if not keywords:
            return []

        found = await store.search(keywords, document_ids)

        return [
            ScoredChunk(
                chunk=c.chunk,
                file_name=c.file_name,
                score=self.score_chunk(query, keywords, c.chunk.content, c.file_name),
            )
            for c in found
        ]


@dataclass
class EmbeddingStrategy:
    """Cosine similarity between the query vector and precomputed chunk vectors."""

    client: EmbeddingClient
    relevance_floor: float = 0.25
    name: str = field(default="embedding", init=False)

    async def rank(
        self, store: ChunkStore, query: str, document_ids: list[str] | None
    ) -> list[ScoredChunk]:
        candidates: list[ChunkWithSource] = await store.candidates(document_ids)
        if not candidates:
            return []

        [query_vector] = await self.client.embed([query])

        results: list[ScoredChunk] = []
        missing = 0
        for c in candidates:
            if not c.chunk.embedding:
                missing += 1
                continue
            score = cosine_similarity(query_vector, c.chunk.embedding)
            results.append(ScoredChunk(chunk=c.chunk, file_name=c.file_name, score=score))

        if missing:
            logger.warning(f"{missing} candidate chunks have no embedding; reindex to include them")
        return results


def select_within_budget(ranked: list[ScoredChunk], budget: int) -> list[ScoredChunk]:
    """Greedy fill in rank order; a chunk is included whole or not at all.

    Chunks longer than the entire budget are skipped since they can never
    fit; otherwise selection stops at the first chunk that would overflow.
    """
    selected: list[ScoredChunk] = []
    used = 0
    for item in ranked:
        size = len(item.chunk.content)
        if size > budget:
            continue
        if used + size > budget:
            break
        selected.append(item)
        used += size
    return selected


def rank_order(item: ScoredChunk) -> tuple[float, int, str]:
    return (-item.score, item.chunk.index, item.chunk.document_id)


def fuse_results(result_sets: list[list[ScoredChunk]]) -> list[ScoredChunk]:
    """Merge result lists, one entry per (document, chunk index) with its best score."""
    best: dict[tuple[str, int], ScoredChunk] = {}
    for results in result_sets:
        for item in results:
            key = (item.chunk.document_id, item.chunk.index)
            current = best.get(key)
            if current is None or item.score > current.score:
                best[key] = item
    return list(best.values())


class Retriever:
    """Resolve scope, rank with the configured strategy, then apply the budget."""

    def __init__(
        self,
        store: ChunkStore,
        catalog: CatalogRepository,
        strategy: RetrievalStrategy,
        *,
        default_top_k: int = 15,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.strategy = strategy
        self.default_top_k = default_top_k

    async def resolve_scope(self, scope: RetrievalScope) -> list[str] | None:
        """Turn a scope into document IDs (None means every document).

        Raises:
            NotFoundError: If the catalog item does not exist
            ValidationError: If the scope names nothing and is not global
        """
        if scope.document_ids is not None:
            return list(scope.document_ids)
        if scope.catalog_item_id is not None:
            return await self.catalog.document_ids_for(scope.catalog_item_id)
        if scope.is_global:
            return None
        raise ValidationError("retrieval scope must name a catalog item, documents, or be global")

    async def full_documents(self, document_ids: list[str] | None) -> list[ScoredChunk]:
        """Every chunk of listing-style documents in scope, unscored.

        Listing-style means the file name looks like a spreadsheet, catalog
        or inventory (see FULL_SCAN_NAME_PATTERNS).
        """
        candidates = await self.store.candidates(document_ids)
        return [
            ScoredChunk(chunk=c.chunk, file_name=c.file_name, score=0.0)
            for c in candidates
            if any(pattern in fold(c.file_name) for pattern in FULL_SCAN_NAME_PATTERNS)
        ]

    async def retrieve(
        self,
        query: str,
        scope: RetrievalScope,
        budget: int,
        *,
        top_k: int | None = None,
        sub_queries: list[str] | None = None,
        full_scan: bool = False,
    ) -> list[ScoredChunk]:
        """Rank chunks for a query and return the best that fit the budget.

        Args:
            query: User question
            scope: Documents the query may draw from
            budget: Maximum total characters of returned chunk content
            top_k: Maximum number of chunks (defaults to default_top_k)
            sub_queries: Extra queries ranked alongside the question; each
                query gets an equal share of top_k and results are merged
                by (document, chunk index) keeping the best score
            full_scan: Also include every chunk of listing-style documents
                and return everything in document order, ignoring top_k

        Returns:
            ScoredChunk list sorted by score descending, ties broken by
            earlier chunk index (document order when full_scan is set).
            Empty when nothing scores above the strategy's relevance floor.
        """
        if budget <= 0:
            raise ValidationError("retrieval budget must be positive", {"budget": budget})

        document_ids = await self.resolve_scope(scope)
        if document_ids is not None and not document_ids:
            return []

        queries = [query, *(sub_queries or [])]
        limit = top_k if top_k is not None else self.default_top_k
        per_query = math.ceil(limit / len(queries))

        result_sets: list[list[ScoredChunk]] = []
        for q in queries:
            scored = await self.strategy.rank(self.store, q, document_ids)
            relevant = [s for s in scored if s.score > self.strategy.relevance_floor]
            relevant.sort(key=rank_order)
            result_sets.append(relevant[:per_query])

        fused = fuse_results(result_sets)
        if full_scan:
            fused = fuse_results([fused, await self.full_documents(document_ids)])
            fused.sort(key=lambda s: (s.chunk.document_id, s.chunk.index))
            candidates = fused
        else:
            fused.sort(key=rank_order)
            candidates = fused[:limit]
        selected = select_within_budget(candidates, budget)

        retrieval_chunks_returned.labels(strategy=self.strategy.name).observe(len(selected))
        logger.info(
            f"Retrieved {len(selected)} of {len(fused)} relevant chunks from {len(queries)} "
            f"queries (strategy={self.strategy.name}, budget={budget}, full_scan={full_scan})"
        )
        return selected

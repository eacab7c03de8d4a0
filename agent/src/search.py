"""
Proposal search: keyword matching plus an optional vector-store ranker.

`RankingIndex` is the process-wide semantic collaborator. It uploads the
corpus it first sees to a NEAR AI (OpenAI-compatible) vector store, once,
and never rebuilds it on its own; proposals created later only show up
after `reset()` or a restart. Callers that need fresh results should use
traditional mode or reset the index.
"""

import json
import logging
import math
import threading
import time

from decimal import Decimal
from typing import Any, Callable, Dict, Final, List, Optional, Tuple

import nearai
import openai

from constants import HYBRID_SEMANTIC_SHARE, SEARCH_LIMIT_DEFAULT, SEARCH_LIMIT_MAX
from errors import InvalidInputError
from helpers import vector_store_name
from near_types import Proposal

_logger = logging.getLogger(__name__)

SEARCH_TYPES = ("semantic", "traditional", "hybrid")
SORT_KEYS = ("relevance", "id", "newest", "oldest", "title")

# Relevance points per matching term
_TITLE_POINTS = 10
_DESCRIPTION_POINTS = 5
_STATUS_POINTS = 3
_EXACT_ID_POINTS = 15

# Vector store build and query knobs
POLL_INTERVAL_S:     Final[int] = 2     # seconds between status checks
MAX_BUILD_MINUTES:   Final[int] = 10    # hard cap on a store build
MAX_SEARCH_RESULTS:  Final[int] = 50    # vector_stores.search accepts 1..50


def proposal_document(proposal: Proposal) -> str:
    return (
        f"Title: {proposal.get('title') or ''}\n"
        f"Description: {proposal.get('description') or ''}\n"
        f"Status: {proposal.get('status') or 'unknown'}\n"
        f"ID: {proposal.get('id')}"
    )


def hub_client() -> openai.OpenAI:
    """OpenAI client pointed at the NEAR AI hub, signed with the local nearai auth."""
    config = nearai.config.load_config_file()
    auth = config["auth"]
    hub_url = config.get("api_url", "https://api.near.ai/v1")
    return openai.OpenAI(base_url=hub_url, api_key=json.dumps(auth))


class RankingIndex:
    """
    Vector-store index over (key, text) pairs, built lazily on first use.

    Construction is cheap. The first `rank()` with a non-empty corpus uploads
    one file per document and creates the store under a lock; later calls
    query that store even if the corpus changed. Results map back to keys
    through the uploaded file ids.
    """

    def __init__(self, client_factory: Optional[Callable[[], Any]] = None, name: Optional[str] = None) -> None:
        self._client_factory = client_factory or hub_client
        self._name = name
        self._client: Any = None
        self._lock = threading.Lock()
        self._store_id: Optional[str] = None
        self._keys_by_file: Dict[str, Any] = {}

    @property
    def built(self) -> bool:
        return self._store_id is not None

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = self._client_factory()
        return self._client

    def _wait_until_ready(self, store_id: str, expected: int) -> None:
        deadline = time.monotonic() + MAX_BUILD_MINUTES * 60

        while time.monotonic() < deadline:
            status = self.client.vector_stores.retrieve(store_id)

            if status.file_counts.completed == expected and status.status == "completed":
                return

            if status.status == "expired":
                raise RuntimeError(f"Vector-store {store_id} failed to build: {status.last_error}")

            time.sleep(POLL_INTERVAL_S)

        raise TimeoutError(f"Vector-store {store_id} build timed out after {MAX_BUILD_MINUTES} minutes")

    def _ensure_built(self, corpus: List[Tuple[Any, str]]) -> None:
        if self._store_id is not None:
            return
        with self._lock:
            if self._store_id is not None:
                return

            keys_by_file: Dict[str, Any] = {}
            for key, text in corpus:
                uploaded = self.client.files.create(
                    file=(f"proposal-{key}.txt", text.encode("utf-8")),
                    purpose="assistants",
                )
                keys_by_file[uploaded.id] = key

            store = self.client.vector_stores.create(
                name=self._name or vector_store_name(),
                file_ids=list(keys_by_file),
            )
            self._wait_until_ready(store.id, len(keys_by_file))

            self._keys_by_file = keys_by_file
            self._store_id = store.id
            _logger.info("Built vector store %s over %d documents", store.id, len(keys_by_file))

    def rank(self, corpus: List[Tuple[Any, str]], query: str, k: int) -> List[Any]:
        """Keys of at most `k` documents closest to `query`, best first."""
        if k < 1 or (not corpus and self._store_id is None):
            return []
        self._ensure_built(corpus)

        page = self.client.vector_stores.search(
            vector_store_id=self._store_id,
            query=query,
            max_num_results=min(k, MAX_SEARCH_RESULTS),
        )

        # a file can match with several chunks
        ranked: List[Any] = []
        for result in page.data:
            key = self._keys_by_file.get(result.file_id)
            if key is not None and key not in ranked:
                ranked.append(key)
        return ranked[:k]

    def reset(self) -> None:
        with self._lock:
            self._store_id = None
            self._keys_by_file = {}


_default_index: Optional[RankingIndex] = None
_default_lock = threading.Lock()


def default_index() -> RankingIndex:
    global _default_index
    if _default_index is None:
        with _default_lock:
            if _default_index is None:
                _default_index = RankingIndex()
    return _default_index


# ──────────────────────────────────────────────────────────────
# Parameters
# ──────────────────────────────────────────────────────────────
def parse_limit(raw: Any) -> int:
    if raw is None or raw == "":
        return SEARCH_LIMIT_DEFAULT
    try:
        limit = int(str(raw).strip())
    except ValueError:
        limit = 0
    if limit < 1 or limit > SEARCH_LIMIT_MAX:
        raise InvalidInputError(f"limit must be a number between 1 and {SEARCH_LIMIT_MAX}")
    return limit


def parse_search_type(raw: Any) -> str:
    value = (str(raw).strip().lower() if raw else "") or "semantic"
    if value not in SEARCH_TYPES:
        raise InvalidInputError(f"searchType must be one of: {', '.join(SEARCH_TYPES)}")
    return value


def parse_sort(raw: Any) -> str:
    value = (str(raw).strip().lower() if raw else "") or "relevance"
    if value not in SORT_KEYS:
        raise InvalidInputError(f"sort must be one of: {', '.join(SORT_KEYS)}")
    return value


def semantic_slots(limit: int) -> int:
    return math.ceil(Decimal(limit) * HYBRID_SEMANTIC_SHARE)


# ──────────────────────────────────────────────────────────────
# Ranking
# ──────────────────────────────────────────────────────────────
def query_terms(query: str) -> List[str]:
    return [t for t in query.lower().split() if t]


def matches(proposal: Proposal, terms: List[str]) -> bool:
    title = str(proposal.get("title") or "").lower()
    description = str(proposal.get("description") or "").lower()
    status = str(proposal.get("status") or "").lower()
    pid = str(proposal.get("id"))
    return any(t in title or t in description or t in status or t == pid for t in terms)


def relevance_score(proposal: Proposal, terms: List[str]) -> int:
    title = str(proposal.get("title") or "").lower()
    description = str(proposal.get("description") or "").lower()
    status = str(proposal.get("status") or "").lower()
    pid = str(proposal.get("id"))

    score = 0
    for term in terms:
        if term in title:
            score += _TITLE_POINTS
        if term in description:
            score += _DESCRIPTION_POINTS
        if term in status:
            score += _STATUS_POINTS
        if term == pid:
            score += _EXACT_ID_POINTS
    return score


def _sort_time(proposal: Proposal) -> Tuple[int, int]:
    created = str(proposal.get("creation_time_ns") or "0")
    return (int(created) if created.isdigit() else 0, int(proposal.get("id") or 0))


def sort_proposals(proposals: List[Proposal], sort: str, terms: List[str]) -> List[Proposal]:
    if sort == "relevance":
        if not terms:
            return list(proposals)
        # stable: ranker order breaks ties
        return sorted(proposals, key=lambda p: relevance_score(p, terms), reverse=True)
    if sort == "id":
        return sorted(proposals, key=lambda p: int(p.get("id") or 0))
    if sort == "newest":
        return sorted(proposals, key=_sort_time, reverse=True)
    if sort == "oldest":
        return sorted(proposals, key=_sort_time)
    return sorted(proposals, key=lambda p: str(p.get("title") or "").casefold())


def status_filter(status: Optional[str]) -> Callable[[Proposal], bool]:
    """Case-insensitive status predicate; an empty status keeps everything."""
    wanted = (status or "").strip().lower()
    return lambda p: not wanted or str(p.get("status") or "").lower() == wanted


class ProposalSearchRanker:
    """
    Ranks proposals for a query.

    The semantic ranker always sees the whole proposal list, so the shared
    index is built from every proposal and a status filter applies to the
    ranked output only.
    """

    def __init__(self, index: Optional[RankingIndex] = None) -> None:
        self._index = index

    @property
    def index(self) -> RankingIndex:
        if self._index is None:
            self._index = default_index()
        return self._index

    def traditional(self, proposals: List[Proposal], query: str) -> List[Proposal]:
        terms = query_terms(query)
        if not terms:
            return list(proposals)
        return [p for p in proposals if matches(p, terms)]

    def _semantic_ids(self, proposals: List[Proposal], query: str) -> List[Proposal]:
        by_id = {p.get("id"): p for p in proposals}
        corpus = [(p.get("id"), proposal_document(p)) for p in proposals]
        return [by_id[key] for key in self.index.rank(corpus, query, len(corpus)) if key in by_id]

    def semantic(
        self,
        proposals: List[Proposal],
        query: str,
        limit: int,
        keep: Optional[Callable[[Proposal], bool]] = None,
    ) -> List[Proposal]:
        keep = keep or status_filter(None)
        try:
            ranked = self._semantic_ids(proposals, query)
        except Exception as e:
            _logger.warning("Semantic search failed, using keyword match: %s", e)
            return self.traditional([p for p in proposals if keep(p)], query)
        return [p for p in ranked if keep(p)][:limit]

    def hybrid(
        self,
        proposals: List[Proposal],
        query: str,
        limit: int,
        keep: Optional[Callable[[Proposal], bool]] = None,
    ) -> List[Proposal]:
        """Semantic hits first (up to ceil(0.7 * limit)), then keyword hits."""
        keep = keep or status_filter(None)
        candidates = [p for p in proposals if keep(p)]
        try:
            ranked = self._semantic_ids(proposals, query)
        except Exception as e:
            _logger.warning("Hybrid search failed, using keyword match: %s", e)
            return self.traditional(candidates, query)

        results = [p for p in ranked if keep(p)][:semantic_slots(limit)]
        seen = {p.get("id") for p in results}
        for proposal in self.traditional(candidates, query):
            if len(results) >= limit:
                break
            if proposal.get("id") not in seen:
                seen.add(proposal.get("id"))
                results.append(proposal)
        return results

    def search(
        self,
        proposals: List[Proposal],
        query: str,
        mode: str,
        limit: int,
        status: Optional[str] = None,
    ) -> List[Proposal]:
        keep = status_filter(status)
        if not query or not query.strip():
            return [p for p in proposals if keep(p)]
        if mode == "traditional":
            return self.traditional([p for p in proposals if keep(p)], query)
        if mode == "hybrid":
            return self.hybrid(proposals, query, limit, keep)
        return self.semantic(proposals, query, limit, keep)

    def run(
        self,
        proposals: List[Proposal],
        query: str = "",
        status: Optional[str] = None,
        sort: str = "relevance",
        limit: int = SEARCH_LIMIT_DEFAULT,
        mode: str = "semantic",
    ) -> Dict[str, Any]:
        """Rank, filter by status, sort and cut; returns results and match statistics."""
        results = self.search(proposals, query, mode, limit, status)
        if not (mode == "hybrid" and sort == "relevance"):
            results = sort_proposals(results, sort, query_terms(query or ""))

        total_found = len(results)
        results = results[:limit]

        status_counts: Dict[str, int] = {}
        for proposal in results:
            key = proposal.get("status") or "unknown"
            status_counts[key] = status_counts.get(key, 0) + 1

        return {"proposals": results, "totalFound": total_found, "statusCounts": status_counts}

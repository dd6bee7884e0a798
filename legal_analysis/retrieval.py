"""
BM25 Retrieval of Legal Authority
=================================

Implements BM25 (Best Match 25) over a jurisdiction's statutes and special
rules. The top hits for a case are formatted as a prompt section so the
analysis phases can cite concrete authority.

Key Features:
- English legal-text tokenization
- BM25 scoring with tunable parameters
- Per-jurisdiction index cache
"""

import math
import re
import logging
from collections import Counter
from typing import List, Dict, Optional
from dataclasses import dataclass

from .rules import get_rules

logger = logging.getLogger(__name__)


@dataclass
class AuthorityDocument:
    """A statute or special rule that can be retrieved"""
    id: str
    kind: str  # statute | special_rule
    citation: str
    text: str


@dataclass
class RetrievalResult:
    """Result from retrieval query"""
    document: AuthorityDocument
    score: float


class LegalTokenizer:
    """Simple English tokenizer tuned for statute text"""

    def __init__(self):
        self.stopwords = {
            'a', 'an', 'the', 'and', 'or', 'of', 'to', 'in', 'on', 'for', 'by',
            'with', 'at', 'from', 'as', 'is', 'are', 'was', 'were', 'be', 'been',
            'it', 'its', 'this', 'that', 'these', 'those', 'if', 'not', 'no',
            'any', 'all', 'may', 'must', 'has', 'have', 'had', 'their', 'they',
            'cal', 'code', 'whether',
        }

    def tokenize(self, text: str) -> List[str]:
        """
        Tokenize text.

        Args:
            text: Text to tokenize

        Returns:
            List of tokens (lowercased, stopwords removed)
        """
        text = text.lower()
        text = re.sub(r'[^a-z0-9\s]', ' ', text)
        return [t for t in text.split() if len(t) > 1 and t not in self.stopwords]


class BM25Index:
    """
    BM25 (Okapi BM25) index over authority documents.

    BM25 scoring: score = IDF * (tf * (k1 + 1)) / (tf + k1 * (1 - b + b * dl/avgdl))

    Parameters:
    - k1: Term frequency saturation (default 1.5)
    - b: Length normalization (default 0.75)
    """

    def __init__(self, k1: float = 1.5, b: float = 0.75):
        self.k1 = k1
        self.b = b
        self.tokenizer = LegalTokenizer()

        self.doc_freqs: Dict[str, int] = {}
        self.doc_lengths: Dict[str, int] = {}
        self.doc_tf: Dict[str, Counter] = {}
        self.documents: Dict[str, AuthorityDocument] = {}

        self.n_docs = 0
        self.avg_doc_length = 0.0

    def add_document(self, document: AuthorityDocument):
        """Add a document to the index"""
        tokens = self.tokenizer.tokenize(document.text)
        if not tokens or document.id in self.documents:
            return

        self.documents[document.id] = document
        self.doc_tf[document.id] = Counter(tokens)
        self.doc_lengths[document.id] = len(tokens)

        for token in set(tokens):
            self.doc_freqs[token] = self.doc_freqs.get(token, 0) + 1

        self.n_docs += 1
        self.avg_doc_length = sum(self.doc_lengths.values()) / self.n_docs

    def _idf(self, term: str) -> float:
        df = self.doc_freqs.get(term, 0)
        if df == 0:
            return 0.0
        return math.log((self.n_docs - df + 0.5) / (df + 0.5) + 1.0)

    def _bm25_score(self, query_tokens: List[str], doc_id: str) -> float:
        tf = self.doc_tf[doc_id]
        dl = self.doc_lengths[doc_id]

        score = 0.0
        for term in query_tokens:
            if term not in tf:
                continue
            term_tf = tf[term]
            numerator = term_tf * (self.k1 + 1)
            denominator = term_tf + self.k1 * (1 - self.b + self.b * dl / self.avg_doc_length)
            score += self._idf(term) * numerator / denominator

        return score

    def search(self, query: str, top_k: int = 5) -> List[RetrievalResult]:
        """
        Search for documents matching the query.

        Returns:
            Results with a positive score, best first (ties keep insertion order)
        """
        query_tokens = self.tokenizer.tokenize(query)
        if not query_tokens:
            return []

        scores = []
        for doc_id in self.documents:
            score = self._bm25_score(query_tokens, doc_id)
            if score > 0:
                scores.append((doc_id, score))

        scores.sort(key=lambda x: x[1], reverse=True)

        return [
            RetrievalResult(document=self.documents[doc_id], score=score)
            for doc_id, score in scores[:top_k]
        ]


def build_authority_index(jurisdiction: str) -> Optional[BM25Index]:
    """Index every statute and special rule of a jurisdiction (None if unsupported)"""
    rules = get_rules(jurisdiction)
    if not rules:
        return None

    index = BM25Index()

    statutes = (
        rules.contract_statutes
        + rules.consumer_protection_statutes
        + rules.commercial_statutes
    )
    for extra in rules.statutes_by_dispute_type.values():
        statutes = statutes + extra
    for extra in rules.statutes_by_issue.values():
        statutes = statutes + extra

    for citation in dict.fromkeys(statutes):
        index.add_document(AuthorityDocument(
            id=f"statute:{citation}",
            kind="statute",
            citation=citation,
            text=citation,
        ))

    for rule in rules.special_rules:
        index.add_document(AuthorityDocument(
            id=f"rule:{rule.id}",
            kind="special_rule",
            citation=rule.statutory_basis or rule.id,
            text=" ".join([rule.category.replace("_", " "), rule.rule, rule.effect] + rule.conditions),
        ))

    return index


def format_legal_context(results: List[RetrievalResult]) -> str:
    lines = []
    for result in results:
        doc = result.document
        if doc.kind == "statute":
            lines.append(f"- {doc.citation}")
        else:
            lines.append(f"- {doc.citation}: {doc.text}")
    return "\n".join(lines)


class LegalContextRetriever:
    """
    Callable retriever injected into the orchestrator.

    Usage:
        retriever = LegalContextRetriever()
        context = retriever("US-CA", "GOODS defective laptop refund refused")
    """

    def __init__(self, top_k: int = 6):
        self.top_k = top_k
        self._indexes: Dict[str, Optional[BM25Index]] = {}

    def _get_index(self, jurisdiction: str) -> Optional[BM25Index]:
        if jurisdiction not in self._indexes:
            self._indexes[jurisdiction] = build_authority_index(jurisdiction)
        return self._indexes[jurisdiction]

    def __call__(self, jurisdiction: str, query: str) -> str:
        """Formatted authority section, or '' when nothing applies"""
        index = self._get_index(jurisdiction)
        if index is None:
            return ""

        results = index.search(query, top_k=self.top_k)
        logger.debug(f"Retrieved {len(results)} authorities for {jurisdiction}")
        return format_legal_context(results)

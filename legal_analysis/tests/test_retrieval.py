"""
Tests for BM25 legal authority retrieval
"""

from legal_analysis.retrieval import (
    AuthorityDocument,
    BM25Index,
    LegalContextRetriever,
    LegalTokenizer,
    build_authority_index,
)


class TestTokenizer:
    """Tokenization of statute text"""

    def test_lowercases_and_drops_stopwords(self):
        tokens = LegalTokenizer().tokenize("The Consumers Legal Remedies Act of Cal. Civ. Code")
        assert tokens == ["consumers", "legal", "remedies", "act", "civ"]

    def test_strips_punctuation(self):
        assert LegalTokenizer().tokenize("§ 1780(a)(1)") == ["1780"]


class TestBM25Index:
    """Scoring and ranking"""

    def _index(self):
        index = BM25Index()
        index.add_document(AuthorityDocument("d1", "statute", "A", "implied warranty of merchantability"))
        index.add_document(AuthorityDocument("d2", "statute", "B", "prejudgment interest on contract damages"))
        index.add_document(AuthorityDocument("d3", "statute", "C", "deceit and actual fraud"))
        return index

    def test_best_match_first(self):
        results = self._index().search("warranty claim for a defective product")
        assert results[0].document.id == "d1"
        assert all(r.score > 0 for r in results)

    def test_no_match_returns_empty(self):
        assert self._index().search("zoning variance") == []

    def test_duplicate_documents_ignored(self):
        index = self._index()
        index.add_document(AuthorityDocument("d1", "statute", "A", "something else entirely"))
        assert index.n_docs == 3


class TestLegalContextRetriever:
    """Formatted context for prompts"""

    def test_california_index_built(self):
        index = build_authority_index("US-CA")
        assert index is not None
        assert index.n_docs > 10

    def test_unknown_jurisdiction_gives_empty_context(self):
        assert LegalContextRetriever()("US-ZZ", "contract breach") == ""
        assert build_authority_index("US-ZZ") is None

    def test_context_mentions_relevant_authority(self):
        context = LegalContextRetriever(top_k=3)("US-CA", "GOODS consumer remedies minimum damages")
        assert context.startswith("- ")
        assert len(context.splitlines()) <= 3
        assert "1780" in context or "CLRA" in context

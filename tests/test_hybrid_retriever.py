import time

import pytest
from conftest import StubKeywordRetriever, StubVectorStore

from retrieval.hybrid import HybridRetriever, fuse_contexts
from retrieval.keyword_retriever import INDEX_UNAVAILABLE, DisabledDocumentRetriever
from vectorstore.base import DisabledVectorStore


@pytest.fixture
def make_retriever():
    created = []

    def _make(keyword, store, **kwargs):
        r = HybridRetriever(keyword, store, **kwargs)
        created.append(r)
        return r

    yield _make
    for r in created:
        r.close()


def test_refund_policy_fusion(make_retriever):
    retriever = make_retriever(
        StubKeywordRetriever(["Returns within 30 days."]),
        StubVectorStore(["Returns within 30 days.", "Contact support for exceptions."]),
    )

    assert retriever.retrieve("refund policy") == [
        "Returns within 30 days.",
        "Contact support for exceptions.",
    ]


def test_fuse_contexts_keeps_first_occurrence_order():
    assert fuse_contexts(["a", "b", "a"], ["c", "b", "d"]) == ["a", "b", "c", "d"]
    assert fuse_contexts([], []) == []


def test_error_sentinels_never_reach_context(make_retriever):
    retriever = make_retriever(
        StubKeywordRetriever([INDEX_UNAVAILABLE, "Error: something broke"]),
        StubVectorStore(["Semantic hit."]),
        keyword_top_n=5,
    )

    assert retriever.retrieve("q") == ["Semantic hit."]


def test_both_paths_failing_returns_empty(make_retriever):
    retriever = make_retriever(
        StubKeywordRetriever(error=RuntimeError("keyword down")),
        StubVectorStore(search_error=ConnectionError("vector down")),
    )

    assert retriever.retrieve("refund policy") == []


def test_one_path_failing_keeps_the_other(make_retriever):
    retriever = make_retriever(
        StubKeywordRetriever(["Keyword hit."]),
        StubVectorStore(search_error=ConnectionError("vector down")),
    )
    assert retriever.retrieve("q") == ["Keyword hit."]


def test_slow_path_times_out_without_cancelling_other(make_retriever):
    class SlowRetriever:
        def retrieve(self, query, max_results):
            time.sleep(1.0)
            return ["too late"]

    retriever = make_retriever(
        SlowRetriever(), StubVectorStore(["Semantic hit."]), path_timeout=0.1
    )

    assert retriever.retrieve("q") == ["Semantic hit."]


def test_blank_semantic_texts_dropped_and_limits_passed(make_retriever):
    keyword = StubKeywordRetriever(["k1", "k2", "k3"])
    retriever = make_retriever(
        keyword,
        StubVectorStore(["", "   ", "s1"]),
        keyword_top_n=2,
        semantic_top_k=3,
    )

    assert retriever.retrieve("q") == ["k1", "k2", "s1"]
    assert keyword.calls == [("q", 2)]


def test_disabled_backends_give_empty_context(make_retriever):
    retriever = make_retriever(DisabledDocumentRetriever(), DisabledVectorStore())
    assert retriever.retrieve("anything") == []

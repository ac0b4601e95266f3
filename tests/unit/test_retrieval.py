"""Tests for the retrieval service and its text-search fallback."""

import pytest
from unittest.mock import AsyncMock

from funding_assistant.core.exceptions import RetrievalError, StoreError
from funding_assistant.core.models import CallFilters, RecordKind, Source
from funding_assistant.retrieval import RetrievalService


async def seed(store, embedder, call_factory):
    for title, description in [
        ("InnoBooster", "Tilskud til innovative startups"),
        ("Grand Solutions", "Store forskningsprojekter i konsortier"),
        ("Eurostars", "Internationale samarbejdsprojekter for SMV'er"),
    ]:
        call = call_factory(title=title, description=description, url=f"https://example.dk/{title}")
        await store.upsert_by_url(call, embedding=await embedder.embed_call(call))


class TestVectorSearch:
    """Tests for the primary vector path."""

    @pytest.mark.asyncio
    async def test_exact_title_ranks_first(self, store, embedder, call_factory):
        """Test the call whose text matches the query is nearest."""
        await seed(store, embedder, call_factory)
        service = RetrievalService(store, embedder)

        results = await service.search_calls("Grand Solutions store forskningsprojekter")
        assert results[0].title == "Grand Solutions"
        assert len(results) == 3

    @pytest.mark.asyncio
    async def test_limit_and_filters(self, store, embedder, call_factory):
        """Test limit and source filter pass through."""
        await seed(store, embedder, call_factory)
        dlsc = call_factory(title="DLSC Event", url="https://dlsc.dk/x", source=Source.DLSC)
        await store.upsert_by_url(dlsc, embedding=await embedder.embed_call(dlsc))
        service = RetrievalService(store, embedder)

        assert len(await service.search_calls("projekter", limit=2)) == 2
        results = await service.search_calls("projekter", filters=CallFilters(source=Source.DLSC))
        assert [r.title for r in results] == ["DLSC Event"]

    @pytest.mark.asyncio
    async def test_knowledge(self, store, embedder, knowledge_entry):
        """Test knowledge search uses the knowledge table."""
        knowledge_entry.embedding = await embedder.embed_knowledge(knowledge_entry)
        await store.upsert_knowledge(knowledge_entry)
        service = RetrievalService(store, embedder)

        results = await service.search_knowledge("de minimis")
        assert [r.title for r in results] == ["De minimis"]

    @pytest.mark.asyncio
    async def test_empty_query(self, store, embedder):
        """Test blank queries and zero limits return nothing without calling the provider."""
        service = RetrievalService(store, embedder)
        assert await service.search_calls("   ") == []
        assert await service.search_calls("InnoBooster", limit=0) == []
        assert embedder.calls == 0


class TestFallback:
    """Tests for the text-search fallback."""

    @pytest.mark.asyncio
    async def test_embedding_failure_falls_back(self, store, failing_embedder, call_factory):
        """Test keyword results when the embedding provider is down."""
        await store.upsert_by_url(call_factory())
        service = RetrievalService(store, failing_embedder)

        results = await service.search_calls("innobooster")
        assert [r.title for r in results] == ["InnoBooster"]

    @pytest.mark.asyncio
    async def test_no_embedder_falls_back(self, store, call_factory):
        """Test a missing embedder behaves like a failed one."""
        await store.upsert_by_url(call_factory())
        service = RetrievalService(store, None)
        assert len(await service.search_calls("InnoBooster")) == 1

    @pytest.mark.asyncio
    async def test_fallback_excludes_expired(self, store, failing_embedder, call_factory, week_ago):
        """Test the fallback keeps the active, non-expired filter."""
        await store.upsert_by_url(call_factory(deadline=week_ago))
        service = RetrievalService(store, failing_embedder)
        assert await service.search_calls("InnoBooster") == []

    @pytest.mark.asyncio
    async def test_store_vector_failure_falls_back(self, store, embedder, call_factory):
        """Test a similarity_search error also triggers the fallback."""
        await store.upsert_by_url(call_factory())
        store.similarity_search = AsyncMock(side_effect=StoreError("index broken"))
        service = RetrievalService(store, embedder)

        results = await service.search(RecordKind.FUNDING_CALL, "InnoBooster", 5)
        assert [r.title for r in results] == ["InnoBooster"]

    @pytest.mark.asyncio
    async def test_both_paths_fail(self, store, failing_embedder):
        """Test RetrievalError when text search fails too."""
        store.text_search = AsyncMock(side_effect=StoreError("database locked"))
        service = RetrievalService(store, failing_embedder)

        with pytest.raises(RetrievalError, match="database locked"):
            await service.search_calls("InnoBooster")

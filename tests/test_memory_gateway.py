"""Tests for the in-memory gateway and relevance ranking."""

import pytest

from goalpilot.domain.context.memory.in_memory_gateway import InMemoryGateway
from goalpilot.domain.context.memory.relevance import ContextRanker
from goalpilot.domain.models.memory import Experience, KnowledgeDocument


class TestContextRanker:
    def test_keyword_overlap(self) -> None:
        ranker = ContextRanker()
        assert ranker.calculate_relevance("deploy service", "how to deploy") == 0.5
        assert ranker.calculate_relevance("", "anything") == 0.0

    def test_substring_boost_capped(self) -> None:
        ranker = ContextRanker()
        assert ranker.calculate_relevance("deploy", "deploy the deploy") == 1.0

    def test_rank_drops_non_matches(self) -> None:
        ranker = ContextRanker()
        docs = [
            KnowledgeDocument(title="Cooking", content="pasta recipes"),
            KnowledgeDocument(title="Deploy guide", content="steps to deploy", tags=["ops"]),
        ]
        ranked = ranker.rank_documents("deploy", docs)
        assert [doc.title for doc, _ in ranked] == ["Deploy guide"]


class TestInMemoryGateway:
    @pytest.mark.asyncio
    async def test_recent_episodes_most_recent_first(self) -> None:
        memory = InMemoryGateway()
        for index in range(4):
            await memory.store_experience(Experience(action=f"a{index}", outcome="ok"))

        recent = await memory.get_recent_episodes(2)

        assert [e.action for e in recent] == ["a3", "a2"]
        assert await memory.get_recent_episodes(0) == []

    @pytest.mark.asyncio
    async def test_experience_cap(self) -> None:
        memory = InMemoryGateway(max_experiences=3)
        for index in range(5):
            await memory.store_experience(Experience(action=f"a{index}", outcome="ok"))

        assert [e.action for e in memory.experiences] == ["a2", "a3", "a4"]

    @pytest.mark.asyncio
    async def test_similar_documents_by_relevance(self) -> None:
        memory = InMemoryGateway()
        await memory.store_document(KnowledgeDocument(title="Release notes", content="version history"))
        await memory.store_document(KnowledgeDocument(title="Deploy checklist", content="deploy steps"))
        await memory.store_document(KnowledgeDocument(title="Team lunch", content="pizza"))

        docs = await memory.find_similar_documents("deploy the release", 2)

        assert [d.title for d in docs] == ["Deploy checklist", "Release notes"]

    @pytest.mark.asyncio
    async def test_store_document_replaces_same_id(self) -> None:
        memory = InMemoryGateway()
        await memory.store_document(KnowledgeDocument(id="k1", title="Draft", content="v1"))
        await memory.store_document(KnowledgeDocument(id="k1", title="Final", content="v2"))

        assert [d.title for d in memory.documents] == ["Final"]

    def test_importance_bounds(self) -> None:
        with pytest.raises(ValueError):
            Experience(action="a", outcome="b", importance=1.5)

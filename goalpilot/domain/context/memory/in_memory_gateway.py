from typing import List, Optional
import asyncio
import structlog

from goalpilot.domain.context.memory.memory_gateway import MemoryGateway
from goalpilot.domain.context.memory.relevance import ContextRanker
from goalpilot.domain.models.memory import Experience, KnowledgeDocument

logger = structlog.get_logger(__name__)


class InMemoryGateway(MemoryGateway):
    """Process-local memory store with keyword relevance search"""

    def __init__(
        self,
        max_experiences: int = 1000,
        ranker: Optional[ContextRanker] = None,
    ):
        self.max_experiences = max_experiences
        self.experiences: List[Experience] = []
        self.documents: List[KnowledgeDocument] = []
        self.ranker = ranker or ContextRanker()
        self._lock = asyncio.Lock()

    async def store_experience(self, experience: Experience) -> None:
        """Add an experience to the episode history"""

        async with self._lock:
            self.experiences.append(experience)

            # Keep only the most recent experiences
            if len(self.experiences) > self.max_experiences:
                self.experiences = self.experiences[-self.max_experiences:]

    async def store_document(self, document: KnowledgeDocument) -> None:
        """Add or replace a knowledge document"""

        async with self._lock:
            self.documents = [d for d in self.documents if d.id != document.id]
            self.documents.append(document)

    async def get_recent_episodes(self, limit: int) -> List[Experience]:
        """Get recent experiences, most recent first"""

        if limit <= 0:
            return []

        async with self._lock:
            return list(reversed(self.experiences[-limit:]))

    async def find_similar_documents(self, text: str, limit: int) -> List[KnowledgeDocument]:
        """Search for documents relevant to the text"""

        if limit <= 0:
            return []

        async with self._lock:
            ranked = self.ranker.rank_documents(text, list(self.documents))

        logger.debug("Ranked knowledge documents", query=text[:50], matches=len(ranked))
        return [doc for doc, _ in ranked[:limit]]

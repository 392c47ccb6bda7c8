from abc import ABC, abstractmethod
from typing import List

from goalpilot.domain.models.memory import Experience, KnowledgeDocument


class MemoryGateway(ABC):
    """Experience and knowledge storage consulted by the orchestrator

    Every call is best-effort from the orchestrator's point of view: a failure
    degrades reporting and never fails a run.
    """

    @abstractmethod
    async def get_recent_episodes(self, limit: int) -> List[Experience]:
        """Get up to ``limit`` experiences, most recent first"""
        pass

    @abstractmethod
    async def find_similar_documents(self, text: str, limit: int) -> List[KnowledgeDocument]:
        """Get up to ``limit`` knowledge documents ordered by relevance to ``text``"""
        pass

    @abstractmethod
    async def store_experience(self, experience: Experience) -> None:
        pass

    @abstractmethod
    async def store_document(self, document: KnowledgeDocument) -> None:
        pass

from typing import List, Tuple
import re

from goalpilot.domain.models.memory import KnowledgeDocument


class ContextRanker:
    """Ranks knowledge documents by keyword relevance to a query"""

    def calculate_relevance(self, query: str, content: str) -> float:
        """Calculate relevance score between query and content"""

        query_lower = query.lower()
        content_lower = content.lower()

        # Simple keyword overlap scoring
        query_words = set(re.findall(r'\w+', query_lower))
        content_words = set(re.findall(r'\w+', content_lower))

        if not query_words:
            return 0.0

        overlap = len(query_words.intersection(content_words))
        score = overlap / len(query_words)

        # Boost score if query appears as substring
        if query_lower and query_lower in content_lower:
            score += 0.3

        return min(score, 1.0)

    def score_document(self, query: str, document: KnowledgeDocument) -> float:
        """Score a document, weighting title and tag matches higher"""

        title_score = self.calculate_relevance(query, document.title)
        tag_score = self.calculate_relevance(query, " ".join(document.tags))
        content_score = self.calculate_relevance(query, document.content)

        return min((title_score * 2 + tag_score + content_score) / 2, 1.0)

    def rank_documents(
        self,
        query: str,
        documents: List[KnowledgeDocument],
    ) -> List[Tuple[KnowledgeDocument, float]]:
        """Rank documents by descending relevance, dropping non-matches"""

        scored = [(doc, self.score_document(query, doc)) for doc in documents]
        # Stable sort keeps insertion order among equal scores
        scored.sort(key=lambda item: item[1], reverse=True)
        return [(doc, score) for doc, score in scored if score > 0]

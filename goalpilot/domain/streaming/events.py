from typing import Dict, Any, Optional, List, Literal, Type
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum

from goalpilot.domain.models.action import ActionDecision
from goalpilot.domain.models.goal import GoalStatus
from goalpilot.domain.models.memory import Experience, KnowledgeDocument
from goalpilot.domain.models.thought import ThoughtStep


class EventType(str, Enum):
    """Observability event kinds"""
    THINK_START = "think:start"
    THINK_STEP = "think:step"
    THINK_COMPLETE = "think:complete"
    THINK_TIMEOUT = "think:timeout"
    THINK_ERROR = "think:error"
    ACTION_START = "action:start"
    ACTION_COMPLETE = "action:complete"
    ACTION_ERROR = "action:error"
    GOAL_CREATED = "goal:created"
    GOAL_UPDATED = "goal:updated"
    GOAL_COMPLETED = "goal:completed"
    GOAL_FAILED = "goal:failed"
    MEMORY_EXPERIENCE_STORED = "memory:experience_stored"
    MEMORY_KNOWLEDGE_STORED = "memory:knowledge_stored"
    MEMORY_EXPERIENCE_RETRIEVED = "memory:experience_retrieved"
    MEMORY_KNOWLEDGE_RETRIEVED = "memory:knowledge_retrieved"


class BaseEvent(BaseModel):
    """Base model for all published events"""
    type: EventType
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    run_id: Optional[str] = None


class ThinkStartEvent(BaseEvent):
    type: Literal[EventType.THINK_START] = EventType.THINK_START
    query: str


class ThinkStepEvent(BaseEvent):
    type: Literal[EventType.THINK_STEP] = EventType.THINK_STEP
    query: str
    step: ThoughtStep


class ThinkCompleteEvent(BaseEvent):
    type: Literal[EventType.THINK_COMPLETE] = EventType.THINK_COMPLETE
    query: str


class ThinkTimeoutEvent(BaseEvent):
    type: Literal[EventType.THINK_TIMEOUT] = EventType.THINK_TIMEOUT
    query: str


class ThinkErrorEvent(BaseEvent):
    type: Literal[EventType.THINK_ERROR] = EventType.THINK_ERROR
    query: str
    error: str


class ActionStartEvent(BaseEvent):
    type: Literal[EventType.ACTION_START] = EventType.ACTION_START
    action: ActionDecision


class ActionCompleteEvent(BaseEvent):
    type: Literal[EventType.ACTION_COMPLETE] = EventType.ACTION_COMPLETE
    action: ActionDecision
    result: Any = None


class ActionErrorEvent(BaseEvent):
    type: Literal[EventType.ACTION_ERROR] = EventType.ACTION_ERROR
    action: ActionDecision
    error: str


class GoalCreatedEvent(BaseEvent):
    type: Literal[EventType.GOAL_CREATED] = EventType.GOAL_CREATED
    id: str
    description: str


class GoalUpdatedEvent(BaseEvent):
    type: Literal[EventType.GOAL_UPDATED] = EventType.GOAL_UPDATED
    id: str
    status: GoalStatus


class GoalCompletedEvent(BaseEvent):
    type: Literal[EventType.GOAL_COMPLETED] = EventType.GOAL_COMPLETED
    id: str
    result: Any = None


class GoalFailedEvent(BaseEvent):
    type: Literal[EventType.GOAL_FAILED] = EventType.GOAL_FAILED
    id: str
    error: str


class ExperienceStoredEvent(BaseEvent):
    type: Literal[EventType.MEMORY_EXPERIENCE_STORED] = EventType.MEMORY_EXPERIENCE_STORED
    experience: Experience


class KnowledgeStoredEvent(BaseEvent):
    type: Literal[EventType.MEMORY_KNOWLEDGE_STORED] = EventType.MEMORY_KNOWLEDGE_STORED
    document: KnowledgeDocument


class ExperienceRetrievedEvent(BaseEvent):
    type: Literal[EventType.MEMORY_EXPERIENCE_RETRIEVED] = EventType.MEMORY_EXPERIENCE_RETRIEVED
    experiences: List[Experience] = Field(default_factory=list)


class KnowledgeRetrievedEvent(BaseEvent):
    type: Literal[EventType.MEMORY_KNOWLEDGE_RETRIEVED] = EventType.MEMORY_KNOWLEDGE_RETRIEVED
    documents: List[KnowledgeDocument] = Field(default_factory=list)


EVENT_MODELS: Dict[EventType, Type[BaseEvent]] = {
    EventType.THINK_START: ThinkStartEvent,
    EventType.THINK_STEP: ThinkStepEvent,
    EventType.THINK_COMPLETE: ThinkCompleteEvent,
    EventType.THINK_TIMEOUT: ThinkTimeoutEvent,
    EventType.THINK_ERROR: ThinkErrorEvent,
    EventType.ACTION_START: ActionStartEvent,
    EventType.ACTION_COMPLETE: ActionCompleteEvent,
    EventType.ACTION_ERROR: ActionErrorEvent,
    EventType.GOAL_CREATED: GoalCreatedEvent,
    EventType.GOAL_UPDATED: GoalUpdatedEvent,
    EventType.GOAL_COMPLETED: GoalCompletedEvent,
    EventType.GOAL_FAILED: GoalFailedEvent,
    EventType.MEMORY_EXPERIENCE_STORED: ExperienceStoredEvent,
    EventType.MEMORY_KNOWLEDGE_STORED: KnowledgeStoredEvent,
    EventType.MEMORY_EXPERIENCE_RETRIEVED: ExperienceRetrievedEvent,
    EventType.MEMORY_KNOWLEDGE_RETRIEVED: KnowledgeRetrievedEvent,
}

from typing import List
from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum

from goalpilot.domain.models.action import ActionDecision


class ThoughtKind(str, Enum):
    """Kind of reasoning output"""
    SYSTEM = "system"
    REASONING = "reasoning"


class ThoughtStep(BaseModel):
    """One unit of intermediate reasoning output"""
    kind: ThoughtKind = Field(default=ThoughtKind.REASONING)
    content: str
    tags: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class ThoughtResult(BaseModel):
    """Ordered thought steps ending in exactly one action decision"""
    query: str
    steps: List[ThoughtStep] = Field(default_factory=list)
    decision: ActionDecision

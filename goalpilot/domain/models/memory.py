from typing import Dict, Any, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime
import uuid


class Experience(BaseModel):
    """An episode recorded after acting"""
    action: str = Field(description="What was attempted")
    outcome: str = Field(description="What happened")
    importance: Optional[float] = Field(None, ge=0.0, le=1.0)
    emotions: List[str] = Field(default_factory=list)
    context: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class KnowledgeDocument(BaseModel):
    """A piece of accumulated knowledge"""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    title: str
    content: str
    category: str = Field(default="general")
    tags: List[str] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=datetime.utcnow)

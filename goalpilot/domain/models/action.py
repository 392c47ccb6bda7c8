from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ActionMetadata(BaseModel):
    """Human-readable description of an action, used for prompting"""
    description: str = Field(description="What the action does")
    example: Optional[str] = Field(None, description="Example payload, serialized as JSON")


class ActionDecision(BaseModel):
    """The action chosen by the reasoning engine"""
    action_type: str = Field(description="Registered action type name")
    payload: Dict[str, Any] = Field(default_factory=dict)


class ExecutionContext(BaseModel):
    """Context handed to action handlers"""
    objective: str = Field(description="Top-level objective being pursued")
    goal_id: Optional[str] = Field(None, description="Goal the action serves")
    goal_description: Optional[str] = None
    world_state: Optional[str] = Field(None, description="Snapshot of the environment")
    metadata: Dict[str, Any] = Field(default_factory=dict)

from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field, ValidationError
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
import json
import re
import structlog

from goalpilot.domain.action.action_registry import ActionRegistry
from goalpilot.domain.errors import ReasoningError
from goalpilot.domain.models.action import ActionDecision
from goalpilot.domain.models.goal import GoalPlan, GoalSpec
from goalpilot.domain.models.thought import ThoughtKind, ThoughtResult, ThoughtStep
from goalpilot.domain.reasoning.reasoning_engine import ReasoningEngine

logger = structlog.get_logger(__name__)


SYSTEM_PROMPT = """You are the reasoning core of an autonomous agent.
You work towards objectives by choosing one registered action at a time.
Always answer with a single JSON object and nothing else.

<world_state>
{world_state}
</world_state>"""

THINK_PROMPT = """Decide on the next action for this task:

<task>
{query}
</task>

Available actions (type, description, example payload):
{actions}

Answer with JSON of the form:
{{"steps": ["short reasoning step", "..."], "action": {{"type": "ACTION_TYPE", "payload": {{...}}}}}}"""

DECOMPOSE_PROMPT = """Break this objective into concrete goals:

<objective>
{objective}
</objective>

Available actions (type, description, example payload):
{actions}

Each goal should be achievable with one action. Use "dependencies" to list ids
of goals that must complete first. "horizon" is one of short, medium, long;
use short for anything that should run now.

Answer with JSON of the form:
{{"goals": [{{"id": "g1", "description": "...", "horizon": "short", "dependencies": []}}]}}"""


class _StepReply(BaseModel):
    content: str
    tags: List[str] = Field(default_factory=list)


class _ActionReply(BaseModel):
    type: str
    payload: Dict[str, Any] = Field(default_factory=dict)


class _ThinkReply(BaseModel):
    steps: List[Union[str, _StepReply]] = Field(default_factory=list)
    action: _ActionReply


class _PlanReply(BaseModel):
    goals: List[GoalSpec]


class LLMReasoningEngine(ReasoningEngine):
    """Reasoning engine backed by a LangChain chat model"""

    def __init__(self, llm: BaseChatModel, action_registry: ActionRegistry):
        self.llm = llm
        self.action_registry = action_registry

    async def think(self, query: str, world_state: Optional[str] = None) -> ThoughtResult:
        system_prompt = self._system_prompt(world_state)
        messages = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=THINK_PROMPT.format(query=query, actions=self._describe_actions())),
        ]

        data = await self._complete(messages, query)
        try:
            reply = _ThinkReply.model_validate(data)
        except ValidationError as e:
            raise ReasoningError(query, f"malformed action decision: {e}") from e

        steps = [ThoughtStep(kind=ThoughtKind.SYSTEM, content=system_prompt)]
        for step in reply.steps:
            if isinstance(step, str):
                steps.append(ThoughtStep(content=step))
            else:
                steps.append(ThoughtStep(content=step.content, tags=step.tags))

        return ThoughtResult(
            query=query,
            steps=steps,
            decision=ActionDecision(action_type=reply.action.type, payload=reply.action.payload),
        )

    async def decompose(self, objective: str, world_state: Optional[str] = None) -> GoalPlan:
        messages = [
            SystemMessage(content=self._system_prompt(world_state)),
            HumanMessage(content=DECOMPOSE_PROMPT.format(
                objective=objective, actions=self._describe_actions()
            )),
        ]

        data = await self._complete(messages, objective)
        try:
            reply = _PlanReply.model_validate(data)
        except ValidationError as e:
            raise ReasoningError(objective, f"malformed goal plan: {e}") from e

        logger.info("Objective decomposed", goals=len(reply.goals))
        return GoalPlan(objective=objective, goals=reply.goals)

    async def _complete(self, messages: List[BaseMessage], query: str) -> Dict[str, Any]:
        response = await self.llm.ainvoke(messages)
        text = _content_text(response.content)
        return _parse_json_object(text, query)

    def _system_prompt(self, world_state: Optional[str]) -> str:
        return SYSTEM_PROMPT.format(world_state=world_state or "No world state available.")

    def _describe_actions(self) -> str:
        lines = []
        for action in self.action_registry.describe():
            line = f"- {action['type']}: {action['description']}"
            if action["example"]:
                line += f"\n  example: {action['example']}"
            lines.append(line)
        return "\n".join(lines) if lines else "(no actions registered)"


def _content_text(content: Union[str, List[Any]]) -> str:
    """Flatten message content blocks into text"""

    if isinstance(content, str):
        return content

    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


def _parse_json_object(text: str, query: str) -> Dict[str, Any]:
    """Extract the JSON object from a model reply, tolerating code fences"""

    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1)

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise ReasoningError(query, "reply contains no JSON object")

    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise ReasoningError(query, f"reply is not valid JSON: {e.msg}") from e

    if not isinstance(data, dict):
        raise ReasoningError(query, "reply is not a JSON object")
    return data

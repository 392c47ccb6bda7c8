import structlog
import logging
import sys
from typing import Dict, Any, List, Optional
from datetime import datetime
import os

# Context variables copied onto every log entry when bound
CONTEXT_KEYS = ("service", "environment", "run_id", "objective")


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "console",
    service_name: str = "goalpilot"
) -> None:
    """Configure stdlib logging and structlog for the process"""

    level = getattr(logging, log_level.upper(), logging.INFO)

    # Log lines go to stderr so stdout stays free for prompts and reports
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level, force=True)

    processors: List[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
        _renderer(log_format),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
    )


def _renderer(log_format: str):
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Copy service and run context onto a log entry"""

    event_dict.setdefault("timestamp", datetime.utcnow().isoformat())

    context = structlog.contextvars.get_contextvars()
    for key in CONTEXT_KEYS:
        value = context.get(key)
        if value and key not in event_dict:
            event_dict[key] = value

    return event_dict


class AgentLogger:
    """One log line per orchestrator event, keyed by event type"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_goal_event(self, event_type: str, goal_id: str, data: Optional[Dict[str, Any]] = None, **kwargs):
        if event_type == "goal:failed":
            self.logger.warning("Goal failed", goal_id=goal_id, **(data or {}), **kwargs)
        else:
            self.logger.info("Goal event", event_type=event_type, goal_id=goal_id, **(data or {}), **kwargs)

    def log_action_execution(
        self,
        action_type: str,
        payload: Dict[str, Any],
        result: Optional[Any] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        """Log an action start, result or failure"""

        if not success:
            self.logger.error("Action failed", action_type=action_type, payload=payload, error=error)
            return
        self.logger.info("Action", action_type=action_type, payload=payload, result=result)

    def log_thought(
        self,
        event_type: str,
        query: str,
        content: Optional[str] = None,
        tags: Optional[list] = None,
        error: Optional[str] = None
    ):
        entry: Dict[str, Any] = {"event_type": event_type, "query": query[:200]}
        if content is not None:
            entry["content"] = content
        if tags:
            entry["tags"] = tags

        if error is not None:
            self.logger.error("Reasoning failed", error=error, **entry)
        else:
            self.logger.info("Thought", **entry)

    def log_memory_event(self, event_type: str, details: Optional[Dict[str, Any]] = None):
        self.logger.info("Memory", event_type=event_type, **(details or {}))


# Global logger instance
agent_logger = AgentLogger("goalpilot")

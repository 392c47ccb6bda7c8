"""Command line front end: read objectives, run them, print the report."""

from typing import Any, Dict, List, Optional
import argparse
import asyncio
import contextlib
import importlib
import signal
import sys
import structlog

from goalpilot.application.cli.console import ConsoleReporter, format_report
from goalpilot.application.cli.prompt import ConsolePrompt, interactive_continue_policy
from goalpilot.domain.action.action_registry import ActionRegistry
from goalpilot.domain.context.memory.in_memory_gateway import InMemoryGateway
from goalpilot.domain.errors import PlanningFailed
from goalpilot.domain.orchestration.cancellation import CancellationToken
from goalpilot.domain.orchestration.orchestrator import GoalOrchestrator
from goalpilot.domain.orchestration.policies import ContinuePolicy, build_continue_policy
from goalpilot.domain.reasoning.llm_reasoning_engine import LLMReasoningEngine
from goalpilot.domain.streaming.event_bus import EventBus
from goalpilot.infrastructure.config.settings import GoalPilotSettings
from goalpilot.infrastructure.observability.logging import agent_logger, setup_logging

logger = structlog.get_logger(__name__)

EXIT_COMMAND = "exit"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments"""
    parser = argparse.ArgumentParser(
        prog="goalpilot",
        description="Decompose objectives into goals and work through them with registered actions",
    )

    parser.add_argument(
        "--interactive",
        action="store_true",
        help="Ask before continuing after a failed goal",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["console", "json"],
        default=None,
        help="Log output format (default: console)",
    )
    parser.add_argument(
        "--model",
        default=None,
        help="Chat model in provider:model form",
    )
    parser.add_argument(
        "--world-state",
        default=None,
        help="Path to a text file describing the environment",
    )
    parser.add_argument(
        "--action-module",
        action="append",
        default=None,
        dest="action_modules",
        help="Module exposing register_actions(registry); may be repeated",
    )
    parser.add_argument(
        "--failure-policy",
        choices=["continue", "stop", "max_failures"],
        default=None,
        help="Unattended behavior after a failed goal (default: continue)",
    )

    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> GoalPilotSettings:
    """Merge explicitly given CLI values over environment settings"""

    kwargs: Dict[str, Any] = {}
    for field, value in (
        ("log_level", args.log_level),
        ("log_format", args.log_format),
        ("llm_model", args.model),
        ("world_state_path", args.world_state),
        ("action_modules", args.action_modules),
        ("failure_policy", args.failure_policy),
    ):
        if value is not None:
            kwargs[field] = value

    return GoalPilotSettings(**kwargs)


def load_action_modules(registry: ActionRegistry, module_names: List[str]):
    """Import each module and let it register its actions"""

    for name in module_names:
        module = importlib.import_module(name)
        register = getattr(module, "register_actions", None)
        if register is None:
            raise AttributeError(f"Action module {name!r} has no register_actions(registry)")
        register(registry)
        logger.info("Loaded action module", module=name, actions=len(registry))


def build_llm(settings: GoalPilotSettings):
    from langchain.chat_models import init_chat_model

    return init_chat_model(settings.llm_model, temperature=settings.llm_temperature)


def build_orchestrator(
    settings: GoalPilotSettings,
    continue_policy: Optional[ContinuePolicy] = None,
    llm=None,
    event_bus: Optional[EventBus] = None,
) -> GoalOrchestrator:
    """Wire the registry, reasoning engine, memory and event bus together"""

    registry = ActionRegistry()
    load_action_modules(registry, settings.action_modules)

    engine = LLMReasoningEngine(llm or build_llm(settings), registry)

    return GoalOrchestrator(
        reasoning_engine=engine,
        action_registry=registry,
        memory=InMemoryGateway(),
        event_bus=event_bus or EventBus(),
        continue_policy=continue_policy or build_continue_policy(
            settings.failure_policy, settings.max_failures
        ),
        world_state=settings.load_world_state(),
        think_timeout=settings.think_timeout,
        action_timeout=settings.action_timeout,
        planning_timeout=settings.planning_timeout,
        memory_timeout=settings.memory_timeout,
        scheduling_horizon=settings.scheduling_horizon,
        recent_episodes=settings.recent_episodes,
        similar_documents=settings.similar_documents,
    )


class Session:
    """Reads objectives until the operator exits or the process is signalled"""

    def __init__(self, orchestrator: GoalOrchestrator, prompt: ConsolePrompt, out=None):
        self.orchestrator = orchestrator
        self.prompt = prompt
        self.out = out or sys.stdout
        self.stop_requested = asyncio.Event()
        self._token: Optional[CancellationToken] = None

    def request_stop(self):
        """Cancel the objective in flight and end the session"""

        logger.info("Shutting down")
        self.stop_requested.set()
        if self._token is not None:
            self._token.cancel("operator interrupt")

    async def run(self):
        while not self.stop_requested.is_set():
            objective = await self._next_objective()
            if objective is None:
                break
            if not objective:
                continue
            await self.run_objective(objective)

    async def _next_objective(self) -> Optional[str]:
        ask = asyncio.ensure_future(self.prompt.ask("Enter your objective (or 'exit' to quit): "))
        stop = asyncio.ensure_future(self.stop_requested.wait())
        try:
            done, _ = await asyncio.wait({ask, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()

        if ask not in done:
            ask.cancel()
            return None

        line = ask.result()
        if line is None or line.strip().lower() == EXIT_COMMAND:
            return None
        return line.strip()

    async def run_objective(self, objective: str):
        self._token = CancellationToken()
        try:
            report = await self.orchestrator.run(objective, self._token)
        except PlanningFailed as e:
            logger.error("Failed to plan objective", objective=objective[:100], reason=e.reason)
            return
        finally:
            self._token = None

        await self.orchestrator.event_bus.drain(timeout=1.0)
        for line in format_report(report):
            print(line, file=self.out)


async def run_session(settings: GoalPilotSettings, interactive: bool = False):
    prompt = ConsolePrompt()
    policy = interactive_continue_policy(prompt) if interactive else None
    orchestrator = build_orchestrator(settings, continue_policy=policy)
    ConsoleReporter(agent_logger).attach(orchestrator.event_bus)

    session = Session(orchestrator, prompt)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, session.request_stop)

    try:
        await session.run()
    finally:
        await orchestrator.event_bus.aclose()


def main(argv: Optional[List[str]] = None):
    """Entry point"""
    args = parse_args(argv)
    settings = build_settings(args)
    setup_logging(log_level=settings.log_level, log_format=settings.log_format)

    try:
        asyncio.run(run_session(settings, interactive=args.interactive))
    except Exception as e:
        logger.error("Fatal error", error=str(e), exc_info=True)
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()

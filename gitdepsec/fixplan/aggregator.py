"""Fix plan aggregation over a streamed generation.

One ``FixPlanAggregator`` serves one repository context
(``owner/repo/branch``). It owns at most one live subscription to the plan
generation stream and folds every event into the shared ``StateStore``
through reducers, so the store stays the single writer of application state.
"""

import asyncio
import contextlib
import json
import logging
from collections.abc import AsyncIterator, Callable
from enum import Enum
from typing import Any

from pydantic import ValidationError

from ..constants import GLOBAL_ERROR_KEY
from ..core.exceptions import CriticalStreamError
from ..core.logging_config import get_stream_logger
from ..state import (
    StateStore,
    fail_fix_plan_generation,
    record_fix_plan_error,
    reset_fix_plan_state,
    set_ecosystem_fix_plan,
    set_fix_plan_loading,
    set_fix_plan_phase,
    set_fix_plan_progress,
    set_fix_plan_repo_key,
    set_fix_plan_step,
    set_global_fix_plan,
    start_fix_plan_generation,
    update_partial_fix_plan,
)
from .decoder import PlanShape, decode_plan
from .events import (
    CompletionEvent,
    ErrorEvent,
    GlobalPlanEvent,
    ProgressEvent,
    stream_event_adapter,
)
from .merge import extract_sections

logger = logging.getLogger(__name__)
stream_logger = get_stream_logger()

NO_GRAPH_MESSAGE = "No graph data available to generate fix plan."

StreamFactory = Callable[[str, str, str], AsyncIterator[Any]]


class GenerateOutcome(Enum):
    STARTED = "started"
    CACHED = "cached"
    ALREADY_RUNNING = "already_running"
    NO_GRAPH = "no_graph"
    FAILED = "failed"


def find_dependency_token(message: str) -> str | None:
    """Return the first ``name@version``-shaped token of an error message."""
    for token in message.split():
        if "@" in token and len(token) > 3:
            return token
    return None


class FixPlanAggregator:
    """Drives fix-plan generation for one repository context.

    Args:
        store: Shared application state authority
        stream_factory: Opens the generation stream for ``(owner, repo, branch)``
            and returns an async iterator of stream events
        owner: Repository owner
        repo: Repository name
        branch: Branch the plan is generated for
    """

    def __init__(
        self,
        store: StateStore,
        stream_factory: StreamFactory,
        owner: str,
        repo: str,
        branch: str,
    ):
        self.store = store
        self.stream_factory = stream_factory
        self.owner = owner
        self.repo = repo
        self.branch = branch

        self._task: asyncio.Task[None] | None = None
        self._token = 0
        self._active_token: int | None = None

        self.store.apply(set_fix_plan_repo_key, self.repo_key)

    @property
    def repo_key(self) -> str:
        return f"{self.owner}/{self.repo}/{self.branch}"

    @property
    def is_active(self) -> bool:
        return self._active_token is not None

    def set_context(self, owner: str, repo: str, branch: str) -> None:
        """Switch repository context, closing the subscription of the old one."""
        if (owner, repo, branch) == (self.owner, self.repo, self.branch):
            return
        self.close()
        self.owner, self.repo, self.branch = owner, repo, branch
        self.store.apply(set_fix_plan_repo_key, self.repo_key)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def generate(self, force: bool = False) -> GenerateOutcome:
        """Start streaming a fix plan for the current context.

        Must be called from a running event loop. Without ``force`` this is a
        no-op while a generation is loading or when a cached plan exists.
        """
        state = self.store.state

        if state.is_fix_plan_loading and not force:
            logger.info(f"Fix plan generation already running for {self.repo_key}")
            return GenerateOutcome.ALREADY_RUNNING

        if not state.graph_data:
            self.store.apply(record_fix_plan_error, GLOBAL_ERROR_KEY, NO_GRAPH_MESSAGE)
            return GenerateOutcome.NO_GRAPH

        cached = state.fix_plans_by_repo.get(self.repo_key)
        if cached and cached.has_plan and not force:
            logger.info(f"Using cached fix plan for {self.repo_key}")
            return GenerateOutcome.CACHED

        self.close()
        self.store.apply(set_fix_plan_repo_key, self.repo_key)
        self.store.apply(start_fix_plan_generation)

        self._token += 1
        token = self._token
        self._active_token = token

        try:
            stream = self.stream_factory(self.owner, self.repo, self.branch)
        except Exception as e:
            logger.error(f"Failed to open fix plan stream for {self.repo_key}: {e}")
            self.store.apply(record_fix_plan_error, GLOBAL_ERROR_KEY, str(e))
            self.store.apply(reset_fix_plan_state)
            self.close()
            return GenerateOutcome.FAILED

        self._task = asyncio.create_task(self._consume(stream, token))
        logger.info(f"Started fix plan generation for {self.repo_key} (token {token})")
        return GenerateOutcome.STARTED

    async def _consume(self, stream: AsyncIterator[Any], token: int) -> None:
        try:
            async for event in stream:
                if event is None:
                    continue
                self.dispatch(event, token=token)
                if self._active_token != token:
                    break
        except CriticalStreamError as e:
            logger.error(f"Fix plan stream for {self.repo_key} lost its connection: {e}")
            self.dispatch(ErrorEvent(message=str(e), critical=True), token=token)
            return
        except Exception as e:
            logger.error(f"Fix plan stream failed for {self.repo_key}: {e}")
            self.dispatch(ErrorEvent(message=str(e) or "Connection error", critical=True), token=token)
            return

        if self._active_token == token:
            logger.warning(f"Fix plan stream for {self.repo_key} ended without completion")
            self.store.apply(set_fix_plan_loading, False)
            self._active_token = None

    async def wait(self) -> None:
        """Wait for the current subscription to finish."""
        task = self._task
        if task is None:
            return
        with contextlib.suppress(asyncio.CancelledError):
            await task

    def close(self) -> None:
        """Close the live subscription; later events of it are ignored."""
        if self._active_token is not None:
            logger.debug(f"Closing fix plan subscription {self._active_token} for {self.repo_key}")
            self.store.apply(set_fix_plan_loading, False)
        self._finish()

    def _finish(self) -> None:
        self._active_token = None
        task, self._task = self._task, None
        if task is None or task.done():
            return
        if task is not asyncio.current_task():
            task.cancel()

    # -------------------------------------------------------------------------
    # Event dispatch
    # -------------------------------------------------------------------------

    def dispatch(self, event: Any, token: int | None = None) -> bool:
        """Apply one stream event to the store.

        ``token`` identifies the subscription the event came from; events of a
        closed or superseded subscription are ignored. Events dispatched
        without a token are always applied.

        Returns:
            True if the event changed application state
        """
        if isinstance(event, dict):
            try:
                event = stream_event_adapter.validate_python(event)
            except ValidationError as e:
                logger.warning(f"Dropping malformed stream event for {self.repo_key}: {e}")
                return False

        if token is not None and token != self._active_token:
            logger.debug(f"Ignoring late {event.kind} event for {self.repo_key} (token {token})")
            self._log_event(event, "ignored")
            return False

        version = self.store.version

        if isinstance(event, GlobalPlanEvent):
            self._apply_global_plan(event)
        elif isinstance(event, ProgressEvent):
            self._apply_progress(event)
        elif isinstance(event, ErrorEvent):
            self._apply_error(event)
        elif isinstance(event, CompletionEvent):
            self._apply_completion(event)
        else:
            logger.warning(f"Unknown stream event type: {type(event).__name__}")
            return False

        changed = self.store.version != version
        self._log_event(event, "applied" if changed else "unchanged")
        return changed

    def _apply_global_plan(self, event: GlobalPlanEvent) -> None:
        decoded = decode_plan(event.payload)

        if decoded.shape is PlanShape.ECOSYSTEM:
            for ecosystem, plan in decoded.ecosystems.items():
                self.store.apply(
                    set_ecosystem_fix_plan, ecosystem, json.dumps(plan, indent=2), self.repo_key
                )
                self.store.apply(update_partial_fix_plan, extract_sections(plan), ecosystem)

            if len(decoded.ecosystems) == 1:
                plan = next(iter(decoded.ecosystems.values()))
                self.store.apply(set_global_fix_plan, json.dumps(plan, indent=2), self.repo_key)
                self.store.apply(update_partial_fix_plan, extract_sections(plan))

        elif decoded.shape is PlanShape.FLAT:
            self.store.apply(
                set_global_fix_plan, json.dumps(decoded.plan, indent=2), self.repo_key
            )
            self.store.apply(update_partial_fix_plan, extract_sections(decoded.plan))

        else:
            logger.warning(f"Discarding invalid global fix plan for {self.repo_key}")

    def _apply_progress(self, event: ProgressEvent) -> None:
        scope = event.ecosystem

        if event.phase:
            self.store.apply(set_fix_plan_phase, event.phase, scope)
        if event.message:
            self.store.apply(set_fix_plan_step, event.message)
        if event.progress is not None:
            self.store.apply(set_fix_plan_progress, event.progress, scope)

        sections = extract_sections(event.fragments)
        if sections:
            self.store.apply(update_partial_fix_plan, sections, scope)

    def _apply_error(self, event: ErrorEvent) -> None:
        if event.critical:
            logger.error(f"Critical fix plan error for {self.repo_key}: {event.message}")
            self.store.apply(fail_fix_plan_generation, event.message)
            self._finish()
            return

        dependency = find_dependency_token(event.message)
        if dependency is None:
            logger.warning(f"Dropping unscoped fix plan error: {event.message}")
            return

        self.store.apply(record_fix_plan_error, dependency, event.message)

    def _apply_completion(self, event: CompletionEvent) -> None:
        if event.ecosystem:
            self.store.apply(set_fix_plan_progress, 100, event.ecosystem)
            return

        logger.info(f"Fix plan generation complete for {self.repo_key}")
        self.store.apply(set_fix_plan_loading, False)
        self._finish()

    def _log_event(self, event: Any, status: str) -> None:
        extra: dict[str, Any] = {
            "event": event.kind,
            "repo_key": self.repo_key,
            "status": status,
        }
        if isinstance(event, ProgressEvent):
            extra["scope"] = event.ecosystem or "global"
            extra["step"] = event.step
            extra["sections"] = list(extract_sections(event.fragments))
        elif isinstance(event, ErrorEvent):
            extra["error"] = event.message
        stream_logger.info(f"{event.kind} event {status}", extra=extra)

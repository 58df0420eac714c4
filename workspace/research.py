# workspace/research.py
"""
Research Session - submission and staged progress for one research question.

Flow:
    idle → running → completed | failed   (every new submission re-enters running)

The pipeline display (plan → search → analyze → synthesize) is a fixed-timing
animation that runs alongside the single research call. The backend does not
report per-stage progress, so the timers are presentation only: each stage is
held for `dwell_seconds`, completed, then held for `settle_seconds`. A stage
that completes before the response has arrived shows no latency or score
until the response lands. Only the last stage waits for the response.
"""

import asyncio
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from workspace.export import export_filename, export_markdown
from workspace.shortcuts import KeyboardHub, KeyEvent
from workspace.state import STAGE_SEQUENCE, ResearchResult, Stage, default_stages
from utils.logger import get_workspace_logger

logger = get_workspace_logger("research")

FAILURE_MESSAGE = "Research failed. Make sure the research backend is running."

# Stage → ResearchResult field shown when the stage is expanded
STAGE_CONTENT = {
    "plan": "plan",
    "analyze": "insights",
}


class SessionStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ResearchSession:
    """
    Owns the question, the stage display, the in-flight research call and the result.

    `transport` is anything with an awaitable `research(payload) -> dict`
    (AsyncProxyClient in the shells, fakes in tests). Callbacks let a shell
    re-render; none of them is required.
    """

    def __init__(
        self,
        transport,
        dwell_seconds: float = 1.2,
        settle_seconds: float = 0.3,
        document_ids_provider: Optional[Callable[[], Sequence[str]]] = None,
        use_chat_history: bool = True,
        chat_session_id: Optional[str] = None,
        on_change: Optional[Callable[[], None]] = None,
        on_failure: Optional[Callable[[str], None]] = None,
        on_step_change: Optional[Callable[[str], None]] = None,
        on_status_change: Optional[Callable[[bool], None]] = None,
    ):
        self.transport = transport
        self.dwell_seconds = dwell_seconds
        self.settle_seconds = settle_seconds
        self.document_ids_provider = document_ids_provider or (lambda: [])
        self.use_chat_history = use_chat_history
        self.chat_session_id = chat_session_id

        self.on_change = on_change
        self.on_failure = on_failure
        self.on_step_change = on_step_change
        self.on_status_change = on_status_change

        self.question = ""
        self.stages: List[Stage] = default_stages()
        self.result: Optional[ResearchResult] = None
        self.error: Optional[str] = None
        self.status = SessionStatus.IDLE
        self.workflow_step = "idle"

        self._disposed = False
        self._keyboard: Optional[KeyboardHub] = None
        self._focus_input: Optional[Callable[[], None]] = None
        self._background: Set[asyncio.Task] = set()

    # ============ STATE ============

    @property
    def is_running(self) -> bool:
        return self.status == SessionStatus.RUNNING

    @property
    def alive(self) -> bool:
        return not self._disposed

    def stage(self, stage_id: str) -> Stage:
        for stage in self.stages:
            if stage.id == stage_id:
                return stage
        raise KeyError(stage_id)

    def _notify(self) -> None:
        if self.alive and self.on_change:
            self.on_change()

    def _set_status(self, status: SessionStatus) -> None:
        was_running = self.is_running
        self.status = status
        if self.alive and self.on_status_change and was_running != self.is_running:
            self.on_status_change(self.is_running)

    def _set_step(self, step: str) -> None:
        self.workflow_step = step
        if self.alive and self.on_step_change:
            self.on_step_change(step)

    def _update_stage(self, stage_id: str, **changes) -> None:
        self.stages = [
            stage.model_copy(update=changes) if stage.id == stage_id else stage
            for stage in self.stages
        ]
        self._notify()

    @staticmethod
    def _stage_details(stage_id: str, result: ResearchResult) -> Dict[str, Any]:
        metric = result.metric_for(stage_id)
        field = STAGE_CONTENT.get(stage_id)
        return {
            "latency": metric.latency if metric else None,
            "score": metric.score if metric else None,
            "content": (getattr(result, field) or None) if field else None,
        }

    @staticmethod
    def _resolved(request: "asyncio.Future") -> Optional[ResearchResult]:
        """The response if it has already arrived successfully."""
        if request.done() and not request.cancelled() and request.exception() is None:
            return request.result()
        return None

    # ============ SUBMISSION ============

    def _build_payload(self, question: str, document_ids: Optional[Sequence[str]], options: Dict[str, Any]) -> Dict[str, Any]:
        if document_ids is None:
            document_ids = self.document_ids_provider()
        payload = {
            "question": question,
            "document_ids": list(document_ids),
            "use_chat_history": self.use_chat_history,
        }
        if self.use_chat_history and self.chat_session_id:
            payload["chat_session_id"] = self.chat_session_id
        payload.update(options)
        return payload

    async def _fetch(self, payload: Dict[str, Any]) -> ResearchResult:
        data = await self.transport.research(payload)
        return ResearchResult.model_validate(data)

    async def submit(self, incoming: Optional[str] = None, document_ids: Optional[Sequence[str]] = None, **options) -> bool:
        """
        Run one research question.

        Does nothing (returns False) for an empty question, while a run is in
        progress, or after dispose(). Otherwise makes exactly one research
        call and returns True when it completed, False when it failed.
        """
        target = (incoming if incoming is not None else self.question).strip()
        if not target or self.is_running or not self.alive:
            return False

        if incoming is not None:
            self.question = incoming

        self.result = None
        self.error = None
        self.stages = [stage.reset() for stage in self.stages]

        # every exit from here leaves the session completed or failed
        animation = None
        try:
            self._set_status(SessionStatus.RUNNING)
            self._notify()
            payload = self._build_payload(target, document_ids, options)
            logger.info(f"Submitting research: {target[:100]} ({len(payload['document_ids'])} documents)")

            request = asyncio.ensure_future(self._fetch(payload))
            animation = asyncio.ensure_future(self._animate(request))

            result = await request
            await animation
        except Exception as e:
            if animation is not None:
                animation.cancel()
                await asyncio.gather(animation, return_exceptions=True)
            logger.error(f"Research failed: {e}")
            if self.alive:
                self._finish_failed(str(e) or FAILURE_MESSAGE)
            else:
                self.status = SessionStatus.FAILED
            return False

        if not self.alive:
            logger.debug("Research finished after dispose; result dropped")
            return False

        self._finish_completed(result)
        return True

    def submit_question(self, query: str):
        """Imperative handle for other components (the hero prompt)."""
        return self.submit(query)

    async def _animate(self, request: "asyncio.Future") -> None:
        last = len(STAGE_SEQUENCE) - 1
        for index, stage_id in enumerate(STAGE_SEQUENCE):
            self._set_step(stage_id)
            self._update_stage(stage_id, status="active")

            await asyncio.sleep(self.dwell_seconds)
            if not self.alive:
                return

            if index == last:
                await asyncio.wait({request})
                if not self.alive or self._resolved(request) is None:
                    return

            changes = {"status": "completed"}
            result = self._resolved(request)
            if result is not None:
                changes.update(self._stage_details(stage_id, result))
            self._update_stage(stage_id, **changes)

            await asyncio.sleep(self.settle_seconds)
            if not self.alive:
                return

    def _finish_completed(self, result: ResearchResult) -> None:
        # stages completed before the response arrived get their figures now
        self.stages = [
            stage.model_copy(update=self._stage_details(stage.id, result))
            if stage.status == "completed" else stage
            for stage in self.stages
        ]
        self.result = result
        if result.chat_session_id and self.use_chat_history:
            self.chat_session_id = result.chat_session_id
        self._set_status(SessionStatus.COMPLETED)
        self._set_step("idle")
        self._notify()
        logger.info(f"Research completed in {result.total_latency:.2f}s (avg score {result.average_score:.1f})")

    def _finish_failed(self, message: str) -> None:
        self.error = message
        self._set_status(SessionStatus.FAILED)
        self._set_step("idle")
        self._notify()
        if self.on_failure:
            self.on_failure(message)

    # ============ EXPORT ============

    def export_markdown(self) -> Optional[str]:
        if self.result is None:
            return None
        return export_markdown(self.question, self.result)

    def export_filename(self) -> str:
        return export_filename()

    # ============ LIFETIME ============

    def mount(self, keyboard: KeyboardHub, focus_input: Optional[Callable[[], None]] = None) -> None:
        """
        Register the keyboard shortcuts for this session's lifetime.

        Ctrl/Cmd+Enter submits the current question; Ctrl/Cmd+K focuses the input.
        """
        self._keyboard = keyboard
        self._focus_input = focus_input
        keyboard.add_listener(self._on_key)

    def dispose(self) -> None:
        """Tear down: remove listeners and ignore any continuation still in flight."""
        self._disposed = True
        if self._keyboard is not None:
            self._keyboard.remove_listener(self._on_key)
            self._keyboard = None
        self._focus_input = None

    def _on_key(self, event: KeyEvent) -> bool:
        if event.is_chord("Enter"):
            if not self.question.strip() or self.is_running:
                return False
            self._spawn(self.submit())
            return True
        if event.is_chord("k"):
            if self._focus_input:
                self._focus_input()
            return True
        return False

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

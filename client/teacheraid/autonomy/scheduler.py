from __future__ import annotations

import asyncio

from pydantic import BaseModel

from teacheraid.agents.adaptation_client import AdaptationClient
from teacheraid.core.errors import SessionError
from teacheraid.core.event_bus import EventBus
from teacheraid.core.logging import DOMAIN_ANALYSIS, get_domain_logger
from teacheraid.core.settings import settings
from teacheraid.memory import mutations
from teacheraid.memory.session_store import SessionStore
from teacheraid.schemas.adaptation import GuideBookResult
from teacheraid.schemas.session import Message, Subject

logger = get_domain_logger(__name__, DOMAIN_ANALYSIS)


class AnalysisJob(BaseModel):
    """What one analysis request saw; `analyzed_count` is written back verbatim on success."""

    subject_id: str
    subject: Subject
    history: list[Message]
    analyzed_count: int


class ProfileAnalysisScheduler:
    """Best-effort background refresh of a subject's sensitivities and guide.

    Fires when the teacher switches away from a subject that gained enough messages since
    its last analysis. A trigger for a subject whose analysis is still outstanding is
    dropped; the next qualifying switch will pick up whatever was missed.
    """

    def __init__(
        self,
        store: SessionStore,
        client: AdaptationClient,
        bus: EventBus | None = None,
        min_new_messages: int | None = None,
    ):
        self.store = store
        self.client = client
        self.bus = bus or EventBus()
        self.min_new_messages = min_new_messages if min_new_messages is not None else settings.analysis_min_new_messages
        self._tasks: dict[str, asyncio.Task] = {}

    def is_running(self, subject_id: str) -> bool:
        task = self._tasks.get(subject_id)
        return task is not None and not task.done()

    def should_analyze(self, subject_id: str) -> bool:
        session = self.store.session
        subject = session.find_subject(subject_id)
        if subject is None:
            return False
        count = len(session.chats.get(subject_id, []))
        if count == 0:
            return False
        return count - subject.analyzed_count >= self.min_new_messages

    def _snapshot(self, subject_id: str) -> AnalysisJob:
        session = self.store.session
        subject = session.find_subject(subject_id)
        if subject is None:
            raise SessionError(f"Unknown subject {subject_id!r}")
        history = session.messages_for(subject_id)
        return AnalysisJob(subject_id=subject_id, subject=subject, history=history, analyzed_count=len(history))

    def on_subject_switch(self, previous_id: str, new_id: str) -> asyncio.Task | None:
        """Start a detached analysis for the subject being left, if it qualifies."""
        if not previous_id or previous_id == new_id:
            return None
        if self.is_running(previous_id):
            logger.info("Analysis already running for %s; trigger suppressed", previous_id)
            return None
        if not self.should_analyze(previous_id):
            return None

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.info("No event loop running; analysis for %s left for a later switch", previous_id)
            return None

        job = self._snapshot(previous_id)
        task = asyncio.create_task(self._run_detached(job), name=f"profile-analysis:{previous_id}")
        self._tasks[previous_id] = task
        task.add_done_callback(lambda done, sid=previous_id: self._forget(sid, done))
        return task

    def _forget(self, subject_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(subject_id) is task:
            del self._tasks[subject_id]

    async def _run_detached(self, job: AnalysisJob) -> None:
        try:
            await self._execute(job, record_progress=True)
        except Exception as exc:  # noqa: BLE001
            # Index stays where it was so the same range is reconsidered next time.
            logger.warning("Background analysis for %s abandoned: %s", job.subject_id, exc)
            self.bus.publish("analysis_failed", "scheduler", {"subject_id": job.subject_id, "error": str(exc)})

    async def _execute(self, job: AnalysisJob, *, record_progress: bool) -> GuideBookResult:
        self.bus.publish(
            "analysis_started",
            "scheduler",
            {"subject_id": job.subject_id, "message_count": job.analyzed_count},
        )
        result = await self.client.analyze_profile(job.subject, job.history)
        self.store.apply(
            mutations.merge_profile_analysis,
            job.subject_id,
            guide=result.guide,
            sensitivities=result.updated_sensitivities,
            analyzed_count=job.analyzed_count if record_progress else None,
        )
        logger.info("Updated profile for %s from %s message(s)", job.subject.name, job.analyzed_count)
        self.bus.publish(
            "analysis_completed",
            "scheduler",
            {"subject_id": job.subject_id, "analyzed_count": job.analyzed_count},
        )
        return result

    async def analyze_now(self, subject_id: str) -> GuideBookResult:
        """Regenerate the guide on request, ignoring the threshold; errors propagate to the caller."""
        job = self._snapshot(subject_id)
        return await self._execute(job, record_progress=False)

    async def wait_idle(self) -> None:
        while True:
            running = [task for task in self._tasks.values() if not task.done()]
            if not running:
                return
            await asyncio.gather(*running, return_exceptions=True)

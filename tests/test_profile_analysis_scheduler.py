from __future__ import annotations

import asyncio

import pytest

from teacheraid.autonomy.scheduler import ProfileAnalysisScheduler
from teacheraid.core.errors import AdaptationError
from teacheraid.memory import mutations
from teacheraid.schemas.session import Message, SenderRole


def _add_messages(store, subject_id: str, count: int, start: int = 0) -> None:
    for index in range(start, start + count):
        store.apply(
            mutations.append_message,
            subject_id,
            Message(
                id=f"{subject_id}-m{index}",
                original_text=f"text {index}",
                translated_text=f"texto {index}",
                sender=SenderRole.TEACHER if index % 2 == 0 else SenderRole.STUDENT,
                timestamp=index,
            ),
        )


def _switch(store, scheduler, new_id: str):
    previous = store.session.current_student_id
    store.apply(mutations.switch_subject, new_id)
    return scheduler.on_subject_switch(previous, new_id)


@pytest.mark.asyncio
async def test_two_new_messages_do_not_trigger(store, fake_client, bus):
    _add_messages(store, "s1", 2)
    scheduler = ProfileAnalysisScheduler(store, fake_client, bus)

    assert _switch(store, scheduler, "s2") is None
    await scheduler.wait_idle()
    assert fake_client.analysis_calls == []
    assert store.session.find_subject("s1").last_analyzed_index is None


@pytest.mark.asyncio
async def test_three_new_messages_trigger_one_analysis(store, fake_client, bus):
    _add_messages(store, "s1", 3)
    scheduler = ProfileAnalysisScheduler(store, fake_client, bus)

    assert _switch(store, scheduler, "s2") is not None
    await scheduler.wait_idle()

    assert len(fake_client.analysis_calls) == 1
    subject, history = fake_client.analysis_calls[0]
    assert subject.id == "s1"
    assert len(history) == 3
    updated = store.session.find_subject("s1")
    assert updated.last_analyzed_index == 3
    assert updated.guide_book == "## Guide"
    assert updated.sensitivities == "Prefers visual cues."
    assert [e["type"] for e in bus.history() if e["type"].startswith("analysis_")] == [
        "analysis_started",
        "analysis_completed",
    ]


@pytest.mark.asyncio
async def test_threshold_counts_only_messages_since_last_analysis(store, fake_client, bus):
    _add_messages(store, "s1", 5)
    store.apply(mutations.update_subject, "s1", last_analyzed_index=3)
    scheduler = ProfileAnalysisScheduler(store, fake_client, bus)

    assert not scheduler.should_analyze("s1")
    _add_messages(store, "s1", 1, start=5)
    assert scheduler.should_analyze("s1")


@pytest.mark.asyncio
async def test_messages_added_during_analysis_are_left_for_next_time(store, fake_client, bus):
    _add_messages(store, "s1", 3)
    fake_client.analysis_gate = asyncio.Event()
    scheduler = ProfileAnalysisScheduler(store, fake_client, bus)

    _switch(store, scheduler, "s2")
    await asyncio.sleep(0)
    _add_messages(store, "s1", 2, start=3)
    fake_client.analysis_gate.set()
    await scheduler.wait_idle()

    assert store.session.find_subject("s1").last_analyzed_index == 3
    assert len(store.session.messages_for("s1")) == 5


@pytest.mark.asyncio
async def test_trigger_while_analysis_outstanding_is_suppressed(store, fake_client, bus):
    _add_messages(store, "s1", 3)
    fake_client.analysis_gate = asyncio.Event()
    scheduler = ProfileAnalysisScheduler(store, fake_client, bus)

    _switch(store, scheduler, "s2")
    await asyncio.sleep(0)
    assert scheduler.is_running("s1")
    _switch(store, scheduler, "s1")
    assert _switch(store, scheduler, "s2") is None

    fake_client.analysis_gate.set()
    await scheduler.wait_idle()
    assert len(fake_client.analysis_calls) == 1
    assert not scheduler.is_running("s1")


@pytest.mark.asyncio
async def test_failed_analysis_leaves_profile_untouched(store, fake_client, bus):
    _add_messages(store, "s1", 3)
    fake_client.analysis_error = AdaptationError("analyze_profile: no response")
    scheduler = ProfileAnalysisScheduler(store, fake_client, bus)
    before = store.session.find_subject("s1")

    _switch(store, scheduler, "s2")
    await scheduler.wait_idle()

    assert store.session.find_subject("s1") == before
    assert bus.history("analysis_failed")
    # Still eligible on the next switch away.
    assert scheduler.should_analyze("s1")


@pytest.mark.asyncio
async def test_subject_deleted_during_analysis_is_ignored(store, fake_client, bus):
    _add_messages(store, "s1", 3)
    fake_client.analysis_gate = asyncio.Event()
    scheduler = ProfileAnalysisScheduler(store, fake_client, bus)

    _switch(store, scheduler, "s2")
    await asyncio.sleep(0)
    store.apply(mutations.delete_subject, "s1")
    fake_client.analysis_gate.set()
    await scheduler.wait_idle()

    assert store.session.find_subject("s1") is None
    assert "s1" not in store.session.chats


@pytest.mark.asyncio
async def test_manual_analysis_ignores_threshold_and_keeps_index(store, fake_client, bus):
    _add_messages(store, "s1", 1)
    scheduler = ProfileAnalysisScheduler(store, fake_client, bus)

    result = await scheduler.analyze_now("s1")

    assert result.guide == "## Guide"
    subject = store.session.find_subject("s1")
    assert subject.guide_book == "## Guide"
    assert subject.last_analyzed_index is None


@pytest.mark.asyncio
async def test_manual_analysis_propagates_errors(store, fake_client, bus):
    fake_client.analysis_error = AdaptationError("down")
    with pytest.raises(AdaptationError):
        await ProfileAnalysisScheduler(store, fake_client, bus).analyze_now("s1")


def test_switch_without_event_loop_skips_analysis(store, fake_client, bus):
    _add_messages(store, "s1", 3)
    scheduler = ProfileAnalysisScheduler(store, fake_client, bus)
    assert _switch(store, scheduler, "s2") is None
    assert fake_client.analysis_calls == []

# tests/test_sync_engine.py

from __future__ import annotations

import asyncio

import pytest

from gemini_tasks.tasks.sync_engine import (
    ADD_ERROR_MESSAGE,
    LOAD_ERROR_MESSAGE,
    REMOVE_ERROR_MESSAGE,
    STILL_SAVING_MESSAGE,
    TOGGLE_ERROR_MESSAGE,
    SyncOutcome,
    TaskSyncEngine,
)
from gemini_tasks.tasks.task_models import Priority

from .fakes import FakeBackend, RecordingNotifier, ScriptedConfirmer

SEED_ROWS = [
    {"id": 1, "title": "water plants", "priority": 1, "created_at": "2026-01-01T10:00:00+00:00"},
    {"id": 2, "title": "pay rent", "priority": 3, "created_at": "2026-01-01T09:00:00+00:00"},
    {"id": 3, "title": "call mom", "priority": None, "created_at": "2026-01-01T11:00:00Z"},
    {"id": 4, "title": "book dentist", "priority": 2, "created_at": "2026-01-01T08:00:00+00:00"},
]


def _seeded() -> tuple[TaskSyncEngine, FakeBackend, RecordingNotifier, ScriptedConfirmer]:
    backend = FakeBackend(rows=[dict(r) for r in SEED_ROWS])
    notifier = RecordingNotifier()
    confirmer = ScriptedConfirmer()
    return TaskSyncEngine(backend, notifier, confirmer), backend, notifier, confirmer


# ---- load ----


@pytest.mark.asyncio
async def test_load_replaces_state_and_orders_by_priority_then_newest() -> None:
    engine, _, _, _ = _seeded()

    result = await engine.load()

    assert result.ok
    assert [t.id for t in engine.tasks] == [2, 4, 3, 1]
    # NULL priority reads as Low.
    assert engine.get(3).priority == Priority.LOW
    assert engine.error is None


@pytest.mark.asyncio
async def test_load_toggles_loading_flag_around_the_call() -> None:
    engine, backend, _, _ = _seeded()
    gate = backend.hold("fetch")

    runner = asyncio.create_task(engine.load())
    await asyncio.sleep(0)
    assert engine.loading is True

    gate.set()
    await runner
    assert engine.loading is False


@pytest.mark.asyncio
async def test_load_failure_empties_list_and_keeps_error_retrievable() -> None:
    engine, backend, notifier, _ = _seeded()
    await engine.load()
    assert engine.tasks

    backend.fail_next("fetch")
    result = await engine.load()

    assert result.outcome == SyncOutcome.FAILED
    assert engine.tasks == ()
    assert engine.loading is False
    assert engine.error == LOAD_ERROR_MESSAGE
    assert notifier.banners[-1] == LOAD_ERROR_MESSAGE

    # A later successful load clears the banner.
    await engine.load()
    assert engine.error is None
    assert len(engine.tasks) == len(SEED_ROWS)


@pytest.mark.asyncio
async def test_load_twice_is_idempotent() -> None:
    engine, _, _, _ = _seeded()

    await engine.load()
    first = engine.tasks
    await engine.load()

    assert engine.tasks == first


@pytest.mark.asyncio
async def test_load_keeps_an_add_whose_insert_has_not_answered() -> None:
    backend = FakeBackend(rows=[{"id": 1, "title": "a", "priority": 1}])
    engine = TaskSyncEngine(backend, RecordingNotifier(), ScriptedConfirmer())

    gate = backend.hold("insert")
    adding = asyncio.create_task(engine.add("b"))
    await asyncio.sleep(0)

    assert (await engine.load()).ok
    assert sorted(t.title for t in engine.tasks) == ["a", "b"]

    gate.set()
    result = await adding

    assert result.ok
    assert sorted(t.id for t in engine.tasks) == sorted(backend.rows) == [1, 2]
    assert not engine.has_pending


@pytest.mark.asyncio
async def test_load_that_already_saw_the_inserted_row_does_not_duplicate_it() -> None:
    backend = FakeBackend(rows=[{"id": 1, "title": "a", "priority": 1}])
    engine = TaskSyncEngine(backend, RecordingNotifier(), ScriptedConfirmer())

    # The insert commits but its reply is still on the wire.
    reply_gate = backend.hold_reply("insert")
    adding = asyncio.create_task(engine.add("b", Priority.HIGH))
    await asyncio.sleep(0)
    assert 2 in backend.rows

    assert (await engine.load()).ok
    assert engine.get(2) is not None

    reply_gate.set()
    result = await adding

    assert result.ok
    assert result.task.id == 2
    assert [t.id for t in engine.tasks] == [2, 1]
    assert not any(t.is_provisional for t in engine.tasks)


# ---- add ----


@pytest.mark.asyncio
async def test_add_is_visible_before_confirmation_then_reconciled(engine, backend) -> None:
    gate = backend.hold("insert")

    runner = asyncio.create_task(engine.add("Buy milk", Priority.MEDIUM))
    await asyncio.sleep(0)

    [provisional] = engine.tasks
    assert provisional.is_provisional
    assert provisional.title == "Buy milk"
    assert engine.is_pending(provisional.id)

    gate.set()
    result = await runner

    assert result.ok
    [confirmed] = engine.tasks
    assert confirmed.id == result.task.id == 1
    assert not confirmed.is_provisional
    assert confirmed.priority == Priority.MEDIUM
    assert confirmed.is_completed is False
    assert not engine.has_pending
    assert backend.rows[1]["title"] == "Buy milk"


@pytest.mark.asyncio
async def test_add_success_grows_list_by_one_with_matching_fields() -> None:
    engine, backend, _, _ = _seeded()
    await engine.load()
    before = len(engine.tasks)

    result = await engine.add("  renew passport  ", Priority.HIGH)

    assert result.ok
    assert len(engine.tasks) == before + 1
    added = engine.get(result.task.id)
    assert added.title == "renew passport"
    assert backend.rows[result.task.id]["title"] == "renew passport"
    assert added.priority == Priority.HIGH
    assert added.is_completed is False


@pytest.mark.asyncio
async def test_add_failure_restores_exact_previous_list() -> None:
    engine, backend, notifier, _ = _seeded()
    await engine.load()
    before = engine.tasks
    rows_before = dict(backend.rows)

    backend.fail_next("insert")
    result = await engine.add("doomed", Priority.HIGH)

    assert result.outcome == SyncOutcome.FAILED
    assert engine.tasks == before
    assert notifier.alerts == [ADD_ERROR_MESSAGE]
    assert backend.rows == rows_before
    assert not engine.has_pending


@pytest.mark.asyncio
@pytest.mark.parametrize("title", ["", "   ", "\t\n"])
async def test_add_blank_title_is_rejected_without_remote_call(engine, backend, title) -> None:
    result = await engine.add(title)

    assert result.outcome == SyncOutcome.REJECTED
    assert engine.tasks == ()
    assert backend.count("insert") == 0


@pytest.mark.asyncio
async def test_add_keeps_local_priority_when_server_returns_null(engine, backend) -> None:
    backend.server_priority = None

    result = await engine.add("x", Priority.MEDIUM)

    assert engine.get(result.task.id).priority == Priority.MEDIUM


@pytest.mark.asyncio
async def test_add_takes_server_normalized_priority(engine, backend) -> None:
    backend.server_priority = 3

    result = await engine.add("x", Priority.LOW)

    assert engine.get(result.task.id).priority == Priority.HIGH


@pytest.mark.asyncio
async def test_inserts_with_priorities_1_3_2_display_as_3_2_1(engine) -> None:
    for p in (Priority.LOW, Priority.HIGH, Priority.MEDIUM):
        await engine.add(f"p{int(p)}", p)

    assert [int(t.priority) for t in engine.tasks] == [3, 2, 1]


@pytest.mark.asyncio
async def test_concurrent_adds_get_distinct_provisional_ids(engine, backend) -> None:
    gates = [backend.hold("insert") for _ in range(3)]

    runners = [asyncio.create_task(engine.add(f"t{i}")) for i in range(3)]
    await asyncio.sleep(0)

    ids = [t.id for t in engine.tasks]
    assert len(set(ids)) == 3
    assert all(i < 0 for i in ids)

    for g in gates:
        g.set()
    await asyncio.gather(*runners)
    assert sorted(t.id for t in engine.tasks) == [1, 2, 3]


# ---- toggle ----


@pytest.mark.asyncio
async def test_toggle_flips_exactly_one_task_without_resorting() -> None:
    engine, backend, _, _ = _seeded()
    await engine.load()
    before = engine.tasks

    result = await engine.toggle_completion(3)

    assert result.ok
    after = engine.tasks
    assert [t.id for t in after] == [t.id for t in before]
    changed = [(b.id, a.is_completed) for b, a in zip(before, after) if b != a]
    assert changed == [(3, True)]
    assert backend.rows[3]["is_completed"] is True


@pytest.mark.asyncio
async def test_toggle_failure_restores_original_value() -> None:
    engine, backend, notifier, _ = _seeded()
    await engine.load()
    before = engine.tasks

    gate = backend.hold("update")
    backend.fail_next("update")
    runner = asyncio.create_task(engine.toggle_completion(1))
    await asyncio.sleep(0)
    assert engine.get(1).is_completed is True

    gate.set()
    result = await runner

    assert result.outcome == SyncOutcome.FAILED
    assert engine.tasks == before
    assert notifier.alerts == [TOGGLE_ERROR_MESSAGE]


@pytest.mark.asyncio
async def test_toggle_unknown_id_is_not_found(engine, backend) -> None:
    result = await engine.toggle_completion(42)

    assert result.outcome == SyncOutcome.NOT_FOUND
    assert backend.count("update") == 0


@pytest.mark.asyncio
async def test_rapid_double_toggle_is_last_resolved_wins() -> None:
    """Known race: toggles on one task are not serialized."""
    engine, backend, _, _ = _seeded()
    await engine.load()

    first_gate = backend.hold("update")
    second_gate = backend.hold("update")
    first = asyncio.create_task(engine.toggle_completion(1))  # False -> True
    await asyncio.sleep(0)
    second = asyncio.create_task(engine.toggle_completion(1))  # True -> False
    await asyncio.sleep(0)
    assert engine.get(1).is_completed is False

    # Second resolves first and fails: rolls back to what it saw (True).
    backend.fail_next("update")
    second_gate.set()
    await second
    assert engine.get(1).is_completed is True

    # First resolves last and succeeds; local state stays True, matching the server.
    first_gate.set()
    await first
    assert engine.get(1).is_completed is True
    assert backend.rows[1]["is_completed"] is True


@pytest.mark.asyncio
async def test_toggle_response_for_deleted_task_is_ignored() -> None:
    engine, backend, _, _ = _seeded()
    await engine.load()

    gate = backend.hold("update")
    backend.fail_next("update")
    runner = asyncio.create_task(engine.toggle_completion(1))
    await asyncio.sleep(0)

    await engine.remove(1, confirm=False)
    gate.set()
    await runner

    assert engine.get(1) is None
    assert not engine.has_pending


# ---- remove ----


@pytest.mark.asyncio
async def test_remove_declined_is_a_no_op() -> None:
    engine, backend, _, confirmer = _seeded()
    await engine.load()
    before = engine.tasks
    confirmer.answers = [False]

    result = await engine.remove(2)

    assert result.outcome == SyncOutcome.DECLINED
    assert engine.tasks == before
    assert backend.count("delete") == 0
    assert confirmer.prompts == ["Delete 'pay rent'?"]


@pytest.mark.asyncio
async def test_remove_confirmed_deletes_locally_and_remotely() -> None:
    engine, backend, _, _ = _seeded()
    await engine.load()

    result = await engine.remove(2)

    assert result.ok
    assert engine.get(2) is None
    assert 2 not in backend.rows


@pytest.mark.asyncio
async def test_remove_failure_restores_full_snapshot_despite_concurrent_mutation() -> None:
    engine, backend, notifier, _ = _seeded()
    await engine.load()
    before = engine.tasks

    gate = backend.hold("delete")
    backend.fail_next("delete")
    runner = asyncio.create_task(engine.remove(1))
    await asyncio.sleep(0)
    assert engine.get(1) is None

    # Another mutation lands while the delete is in flight.
    assert (await engine.toggle_completion(2)).ok

    gate.set()
    result = await runner

    assert result.outcome == SyncOutcome.FAILED
    assert engine.tasks == before
    assert notifier.alerts == [REMOVE_ERROR_MESSAGE]


@pytest.mark.asyncio
async def test_toggle_and_remove_wait_for_the_real_id(engine, backend, notifier, confirmer) -> None:
    gate = backend.hold("insert")
    runner = asyncio.create_task(engine.add("short-lived"))
    await asyncio.sleep(0)
    [provisional] = engine.tasks

    toggled = await engine.toggle_completion(provisional.id)
    removed = await engine.remove(provisional.id)

    assert toggled.outcome == removed.outcome == SyncOutcome.PENDING
    assert toggled.error == STILL_SAVING_MESSAGE
    assert backend.count("update") == backend.count("delete") == 0
    assert confirmer.prompts == []
    assert notifier.alerts == []
    assert engine.get(provisional.id).is_completed is False

    gate.set()
    assert (await runner).ok

    # Local and server agree once the insert has answered.
    [local] = engine.tasks
    server = backend.rows[local.id]
    assert local.id == 1
    assert (local.title, local.is_completed) == (server["title"], server["is_completed"])

    assert (await engine.toggle_completion(local.id)).ok
    assert backend.rows[1]["is_completed"] is True
    assert (await engine.remove(local.id, confirm=False)).ok
    assert engine.tasks == ()
    assert backend.rows == {}


@pytest.mark.asyncio
async def test_failed_remove_restores_adds_confirmed_meanwhile_with_server_ids() -> None:
    backend = FakeBackend(rows=[{"id": 1, "title": "a", "priority": 1}])
    engine = TaskSyncEngine(backend, RecordingNotifier(), ScriptedConfirmer())
    await engine.load()

    insert_gate = backend.hold("insert")
    adding = asyncio.create_task(engine.add("b"))
    await asyncio.sleep(0)

    delete_gate = backend.hold("delete")
    backend.fail_next("delete")
    removing = asyncio.create_task(engine.remove(1, confirm=False))
    await asyncio.sleep(0)

    insert_gate.set()
    assert (await adding).ok
    delete_gate.set()
    assert (await removing).outcome == SyncOutcome.FAILED

    assert all(t.id > 0 for t in engine.tasks)
    assert sorted(t.id for t in engine.tasks) == sorted(backend.rows) == [1, 2]
    assert not engine.has_pending


@pytest.mark.asyncio
async def test_failed_remove_drops_adds_rolled_back_meanwhile() -> None:
    backend = FakeBackend(rows=[{"id": 1, "title": "a", "priority": 1}])
    engine = TaskSyncEngine(backend, RecordingNotifier(), ScriptedConfirmer())
    await engine.load()

    insert_gate = backend.hold("insert")
    backend.fail_next("insert")
    adding = asyncio.create_task(engine.add("b"))
    await asyncio.sleep(0)

    delete_gate = backend.hold("delete")
    backend.fail_next("delete")
    removing = asyncio.create_task(engine.remove(1, confirm=False))
    await asyncio.sleep(0)

    insert_gate.set()
    assert (await adding).outcome == SyncOutcome.FAILED
    delete_gate.set()
    assert (await removing).outcome == SyncOutcome.FAILED

    assert [t.id for t in engine.tasks] == [1]


@pytest.mark.asyncio
async def test_failed_remove_keeps_adds_started_after_the_delete() -> None:
    backend = FakeBackend(rows=[{"id": 1, "title": "a", "priority": 1}])
    engine = TaskSyncEngine(backend, RecordingNotifier(), ScriptedConfirmer())
    await engine.load()

    delete_gate = backend.hold("delete")
    backend.fail_next("delete")
    removing = asyncio.create_task(engine.remove(1, confirm=False))
    await asyncio.sleep(0)

    insert_gate = backend.hold("insert")
    adding = asyncio.create_task(engine.add("c"))
    await asyncio.sleep(0)

    delete_gate.set()
    assert (await removing).outcome == SyncOutcome.FAILED
    assert sorted(t.title for t in engine.tasks) == ["a", "c"]

    insert_gate.set()
    assert (await adding).ok
    assert sorted(t.id for t in engine.tasks) == sorted(backend.rows) == [1, 2]


# ---- end to end ----


@pytest.mark.asyncio
async def test_buy_milk_scenario(engine, confirmer) -> None:
    added = await engine.add("Buy milk", Priority.MEDIUM)
    [task] = engine.tasks
    assert task.priority == Priority.MEDIUM
    assert task.is_completed is False

    await engine.toggle_completion(added.task.id)
    assert engine.get(added.task.id).is_completed is True

    confirmer.answers = [False]
    await engine.remove(added.task.id)
    assert len(engine.tasks) == 1

    confirmer.answers = [True]
    await engine.remove(added.task.id)
    assert engine.tasks == ()


@pytest.mark.asyncio
async def test_add_network_error_scenario(engine, backend, notifier) -> None:
    await engine.add("keep me")
    before = engine.tasks

    backend.fail_next("insert", "simulated network error")
    result = await engine.add("lost")

    assert engine.tasks == before
    assert result.error == "simulated network error"
    assert notifier.alerts == [ADD_ERROR_MESSAGE]

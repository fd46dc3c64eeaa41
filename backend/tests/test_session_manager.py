import asyncio

import pytest

from conftest import FlakyStorage, make_vehicle
from ecu_console.errors import SessionNotActive, VehicleInvalid
from ecu_console.models.diagnostic import TroubleCode
from ecu_console.models.module import ProgressUpdate, Tab
from ecu_console.models.session import ManagerState, SessionStatus
from ecu_console.services.progress_store import ProgressStore
from ecu_console.services.result_cache import ResultCache
from ecu_console.services.session_manager import SessionManager
from ecu_console.services.unlock import UnlockStateMachine
from ecu_console.storage.gateway import CURRENT_SESSION_KEY, CURRENT_VEHICLE_KEY, SESSION_HISTORY_KEY


def build_manager(catalog, storage) -> SessionManager:
    unlock = UnlockStateMachine(catalog, ProgressStore(storage), storage)
    return SessionManager(
        catalog,
        storage,
        ResultCache(storage),
        unlock,
        history_limit=10,
        action_log_limit=50,
        checkpoint_delay=0.0,
    )


@pytest.fixture
def manager(catalog, storage) -> SessionManager:
    return build_manager(catalog, storage)


def test_start_reports_checkpoints_in_order(manager, vehicle) -> None:
    seen: list[int] = []

    session = asyncio.run(manager.start(vehicle, on_progress=seen.append))

    assert seen == [10, 25, 50, 75, 90, 100]
    assert manager.scan_progress == 0
    assert manager.state == ManagerState.ACTIVE
    assert session.id.startswith("DIAG_")
    assert [m.module_id for m in session.modules] == ["EMS", "TCU", "ESP", "SRS", "SVS"]
    assert session.pages_visited == ["dashboard"]
    assert "UDS" in session.protocols_used
    assert manager.vehicle == vehicle


def test_vehicle_without_known_modules_is_rejected(manager) -> None:
    with pytest.raises(VehicleInvalid):
        asyncio.run(manager.start(make_vehicle(modules=["XYZ"])))

    assert manager.state == ManagerState.NONE
    assert manager.active is None
    assert manager.history() == []


def test_invalid_vehicle_leaves_running_session_alone(manager, vehicle) -> None:
    async def scenario():
        first = await manager.start(vehicle)
        with pytest.raises(VehicleInvalid):
            await manager.start(make_vehicle(vin="BAD", modules=[]))
        return first

    first = asyncio.run(scenario())

    assert manager.active.id == first.id
    assert manager.state == ManagerState.ACTIVE


def test_unknown_modules_in_vehicle_are_skipped(manager) -> None:
    session = asyncio.run(manager.start(make_vehicle(modules=["EMS", "XYZ", "EMS"])))
    assert [m.module_id for m in session.modules] == ["EMS"]


def test_starting_again_ends_previous_session(manager, vehicle) -> None:
    async def scenario():
        first = await manager.start(vehicle)
        await manager._cache.get_or_load("EMS", first.id, fake_loader)
        second = await manager.start(make_vehicle(vin="MA1TA2XUV7A000002"))
        return first, second

    first, second = asyncio.run(scenario())

    history = manager.history()
    assert [s.id for s in history] == [second.id, first.id]
    assert history[0].status == SessionStatus.ACTIVE
    assert history[1].status == SessionStatus.COMPLETED
    assert history[1].end_time is not None
    assert history[1].duration_ms >= 0
    assert manager._cache.peek("EMS", first.id) is None


async def fake_loader(module_id: str) -> list[TroubleCode]:
    return [TroubleCode(code="P0171", description="System too lean")]


def test_failure_during_scan_changes_nothing(manager, storage, vehicle) -> None:
    def explode(percent: int):
        if percent == 50:
            raise RuntimeError("adapter disconnected")

    with pytest.raises(RuntimeError):
        asyncio.run(manager.start(vehicle, on_progress=explode))

    assert manager.state == ManagerState.NONE
    assert manager.active is None
    assert manager.scan_progress == 0
    assert manager.history() == []
    assert storage.read(CURRENT_SESSION_KEY) is None


def test_action_log_keeps_latest_fifty(manager, vehicle) -> None:
    asyncio.run(manager.start(vehicle))

    for i in range(51):
        manager.record_activity("tab_view", {"index": i})

    actions = manager.active.actions
    assert len(actions) == 50
    assert actions[0].details == {"index": 1}
    assert actions[-1].details == {"index": 50}
    assert manager.active.last_activity == actions[-1].timestamp


def test_page_navigation_tracks_pages(manager, vehicle) -> None:
    asyncio.run(manager.start(vehicle))

    manager.record_activity("page_navigation", {"page": "module"})
    manager.record_activity("page_navigation", {"page": "module"})

    assert manager.active.pages_visited == ["dashboard", "module"]


def test_history_is_capped(manager) -> None:
    async def scenario():
        for i in range(11):
            await manager.start(make_vehicle(vin=f"VIN{i:02d}"))

    asyncio.run(scenario())

    history = manager.history()
    assert len(history) == 10
    assert history[0].vehicle_vin == "VIN10"
    assert all(s.vehicle_vin != "VIN00" for s in history)


def test_end_without_session(manager) -> None:
    with pytest.raises(SessionNotActive):
        manager.end()
    with pytest.raises(SessionNotActive):
        manager.record_activity("tab_view")


def test_end_resets_module_progress(manager, vehicle) -> None:
    asyncio.run(manager.start(vehicle))
    manager._unlock.select_module("EMS")
    manager._unlock.report_progress("EMS", ProgressUpdate(dtc_analyzed=True, categories_viewed=["Fuel System"]))

    ended = manager.end()

    assert ended.status == SessionStatus.COMPLETED
    assert manager.state == ManagerState.NONE
    assert manager._unlock.is_unlocked("EMS", Tab.ECU_ID) is False
    assert manager._unlock.active_module is None


def test_module_codes_update_totals(manager, vehicle) -> None:
    asyncio.run(manager.start(vehicle))
    codes = [
        TroubleCode(code="P0171", description="lean", severity="high"),
        TroubleCode(code="P0300", description="misfire", severity="critical"),
    ]

    session = manager.record_module_codes("EMS", codes)

    assert session.total_dtcs == 2
    assert session.critical_dtcs == 1
    assert session.module("EMS").critical_dtc_count == 1


def test_active_session_restored_after_reload(catalog, storage, manager, vehicle) -> None:
    session = asyncio.run(manager.start(vehicle))

    restored = build_manager(catalog, storage)

    assert restored.state == ManagerState.ACTIVE
    assert restored.active.id == session.id
    assert restored.vehicle == vehicle
    assert [s.id for s in restored.history()] == [session.id]


def test_corrupt_session_record_is_discarded(catalog, storage) -> None:
    storage.write(CURRENT_SESSION_KEY, "{\"id\": ")

    restored = build_manager(catalog, storage)

    assert restored.active is None
    assert restored.state == ManagerState.NONE
    assert storage.read(CURRENT_SESSION_KEY) is None


def test_history_write_failure_leaves_no_session(catalog, vehicle) -> None:
    storage = FlakyStorage({SESSION_HISTORY_KEY})
    manager = build_manager(catalog, storage)

    with pytest.raises(OSError):
        asyncio.run(manager.start(vehicle))

    assert manager.state == ManagerState.NONE
    assert manager.active is None
    assert manager.vehicle is None
    assert manager.history() == []
    assert storage.read(CURRENT_SESSION_KEY) is None
    assert storage.read(CURRENT_VEHICLE_KEY) is None

    reloaded = build_manager(catalog, storage)
    assert reloaded.active is None
    assert reloaded.state == ManagerState.NONE


def test_session_write_failure_rolls_back_history(catalog, vehicle) -> None:
    storage = FlakyStorage()
    manager = build_manager(catalog, storage)
    first = asyncio.run(manager.start(vehicle))

    storage.failing_keys.add(CURRENT_SESSION_KEY)
    with pytest.raises(OSError):
        asyncio.run(manager.start(make_vehicle(vin="MA1TA2XUV7A000002")))

    assert manager.active is None
    assert [(s.id, s.status) for s in manager.history()] == [(first.id, SessionStatus.COMPLETED)]
    assert storage.read(CURRENT_VEHICLE_KEY) is None

    reloaded = build_manager(catalog, storage)
    assert reloaded.active is None
    assert [s.id for s in reloaded.history()] == [first.id]


def test_zero_limits_are_respected(catalog, storage, vehicle) -> None:
    unlock = UnlockStateMachine(catalog, ProgressStore(storage), storage)
    manager = SessionManager(catalog, storage, ResultCache(storage), unlock, history_limit=0, action_log_limit=0)

    asyncio.run(manager.start(vehicle))
    manager.record_activity("tab_view")

    assert manager.history() == []
    assert manager.active.actions == []

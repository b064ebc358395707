import datetime as dt

import pytest

from school_calendar import store
from school_calendar.errors import StorageError, ValidationError
from school_calendar.merge import group_day_configs, group_events, group_materials


def _event(date="2024-03-01", time="09:00", department="Music", **extra):
    return {"date": date, "title": "Assembly", "time": time, "department": department, **extra}


def test_upsert_creates_row_lazily(run):
    assert run(store.get_all_day_configs) == []
    merged = run(store.upsert_day_config, "2024-03-01", {"color": "#fff"})
    assert merged == {"color": "#fff", "dayType": None, "isAccess": False}
    assert list(group_day_configs(run(store.get_all_day_configs))) == ["2024-03-01"]


def test_upsert_coalesces_onto_existing_row(run):
    run(store.upsert_day_config, "2024-03-01", {"dayType": "A", "isAccess": True})
    merged = run(store.upsert_day_config, "2024-03-01", {"color": "#fff"})
    assert merged == {"color": "#fff", "dayType": "A", "isAccess": True}

    configs = group_day_configs(run(store.get_all_day_configs))
    assert configs["2024-03-01"] == {"color": "#fff", "dayType": "A", "isAccess": True}


def test_upsert_can_clear_access_flag(run):
    run(store.upsert_day_config, "2024-03-01", {"isAccess": True})
    merged = run(store.upsert_day_config, "2024-03-01", {"isAccess": False})
    assert merged["isAccess"] is False


def test_upsert_rejects_unknown_day_type(run):
    with pytest.raises(ValidationError):
        run(store.upsert_day_config, "2024-03-01", {"dayType": "C"})
    assert run(store.get_all_day_configs) == []


@pytest.mark.parametrize("bad", [None, "", "03/01/2024", "2024-13-01"])
def test_invalid_date_key(run, bad):
    with pytest.raises(ValidationError):
        run(store.upsert_day_config, bad, {"color": "#fff"})


@pytest.mark.parametrize("missing", ["date", "title", "time", "department"])
def test_insert_event_requires_fields(run, missing):
    fields = _event()
    del fields[missing]
    with pytest.raises(ValidationError) as exc:
        run(store.insert_event, fields)
    assert missing in exc.value.message


def test_insert_event_assigns_id(run):
    first = run(store.insert_event, _event())
    second = run(store.insert_event, _event())
    assert first.id is not None
    assert second.id != first.id
    assert first.time == dt.time(9, 0)
    assert first.description is None


def test_get_events_inclusive_range(run):
    run(store.insert_event, _event(date="2024-02-29"))
    run(store.insert_event, _event(date="2024-03-01"))
    run(store.insert_event, _event(date="2024-03-31"))
    run(store.insert_event, _event(date="2024-04-01"))

    rows = run(store.get_events, "2024-03-01", "2024-03-31")
    assert sorted(r.date_key.isoformat() for r in rows) == ["2024-03-01", "2024-03-31"]


def test_get_events_ordered_by_time(run):
    run(store.insert_event, _event(time="09:00"))
    run(store.insert_event, _event(time="08:30"))
    grouped = group_events(run(store.get_events, "2024-03-01", "2024-03-01"))
    assert [e["time"] for e in grouped["2024-03-01"]] == ["08:30", "09:00"]


def test_see_all_is_no_filter(run):
    run(store.insert_event, _event(department="Music"))
    run(store.insert_event, _event(department="Athletics"))

    everything = {r.id for r in run(store.get_events, "2024-03-01", "2024-03-01")}
    see_all = {r.id for r in run(store.get_events, "2024-03-01", "2024-03-01", "See All")}
    music = run(store.get_events, "2024-03-01", "2024-03-01", "Music")

    assert see_all == everything
    assert len(everything) == 2
    assert [r.department for r in music] == ["Music"]


def test_delete_event_is_idempotent(run):
    event = run(store.insert_event, _event())
    run(store.delete_event, event.id)
    run(store.delete_event, event.id)
    run(store.delete_event, 99999)
    assert run(store.get_events, "2024-03-01", "2024-03-01") == []


def test_material_round_trip(run):
    fields = {"date": "2024-03-01", "grade": "7", "title": "Fractions", "link": "https://example.org/f"}
    created = run(store.insert_material, fields)
    assert created.type == "lesson"

    grouped = group_materials(run(store.get_materials, "2024-03-01"))
    assert grouped == {"2024-03-01": {"7": [
        {"id": created.id, "title": "Fractions", "link": "https://example.org/f", "type": "lesson"},
    ]}}
    assert run(store.get_materials, "2024-03-02") == []


def test_insert_material_requires_link(run):
    with pytest.raises(ValidationError):
        run(store.insert_material, {"date": "2024-03-01", "grade": "7", "title": "x"})


def test_delete_material_is_idempotent(run):
    material = run(store.insert_material, {"date": "2024-03-01", "grade": "8", "title": "x", "link": "y"})
    run(store.delete_material, material.id)
    run(store.delete_material, material.id)
    assert run(store.get_materials, "2024-03-01") == []


def test_description_upsert_replaces_text(run):
    run(store.upsert_description, "2024-03-01", "Picture day")
    run(store.upsert_description, "2024-03-01", "")
    rows = run(store.get_all_descriptions)
    assert [(r.date_key.isoformat(), r.description) for r in rows] == [("2024-03-01", "")]


def test_missing_tables_raise_storage_error(tmp_path):
    import asyncio
    from school_calendar.db import make_engine, make_sessionmaker

    eng = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    factory = make_sessionmaker(eng)

    async def go():
        async with factory() as session:
            await store.get_all_day_configs(session)

    with pytest.raises(StorageError):
        asyncio.run(go())
    asyncio.run(eng.dispose())


def _failing_commit(monkeypatch):
    from sqlalchemy.exc import OperationalError
    from sqlalchemy.ext.asyncio import AsyncSession

    async def commit(self):
        raise OperationalError("COMMIT", {}, Exception("connection lost"))

    monkeypatch.setattr(AsyncSession, "commit", commit)


def test_failed_upsert_leaves_row_unchanged(run, monkeypatch):
    run(store.upsert_day_config, "2024-03-01", {"color": "#000", "dayType": "A"})

    _failing_commit(monkeypatch)
    with pytest.raises(StorageError):
        run(store.upsert_day_config, "2024-03-01", {"color": "#fff", "isAccess": True})
    monkeypatch.undo()

    configs = group_day_configs(run(store.get_all_day_configs))
    assert configs == {"2024-03-01": {"color": "#000", "dayType": "A", "isAccess": False}}


def test_failed_insert_stores_nothing(run, monkeypatch):
    _failing_commit(monkeypatch)
    with pytest.raises(StorageError):
        run(store.insert_event, _event())
    monkeypatch.undo()

    assert run(store.get_events, "2024-03-01", "2024-03-01") == []


def test_overlong_color_is_rejected(run):
    with pytest.raises(ValidationError) as exc:
        run(store.upsert_day_config, "2024-03-01", {"color": "#1234567"})
    assert "color" in exc.value.message
    assert run(store.get_all_day_configs) == []


@pytest.mark.parametrize("field, value", [("title", "x" * 256), ("department", "d" * 51)])
def test_overlong_event_fields_are_rejected(run, field, value):
    with pytest.raises(ValidationError) as exc:
        run(store.insert_event, _event(**{field: value}))
    assert field in exc.value.message


def test_overlong_grade_is_rejected(run):
    with pytest.raises(ValidationError):
        run(store.insert_material, {"date": "2024-03-01", "grade": "12345", "title": "x", "link": "y"})
    assert run(store.get_materials, "2024-03-01") == []

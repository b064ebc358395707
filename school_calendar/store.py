# school_calendar/store.py
"""
Record store for the four calendar tables.

Every function takes an ``AsyncSession``. Writes run in their own transaction
and either commit fully or roll back. Database failures surface as
``StorageError``.
"""
import datetime as dt
import functools
import logging
import re

from sqlalchemy import select, delete, func, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from school_calendar.errors import StorageError, ValidationError
from school_calendar.merge import merge_day_config, merge_description, partial_update
from school_calendar.models import DateConfig, DateDescription, Event, Material

logger = logging.getLogger(__name__)

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")
ALL_DEPARTMENTS = "See All"
VALID_DAY_TYPES = {"A", "B"}

# API field name -> column name
DAY_CONFIG_COLUMNS = {"color": "color", "dayType": "day_type", "isAccess": "is_access"}


def _storage_errors(fn):
    @functools.wraps(fn)
    async def wrapper(session: AsyncSession, *args, **kwargs):
        try:
            return await fn(session, *args, **kwargs)
        except SQLAlchemyError as e:
            logger.error("Storage failure in %s", fn.__name__, exc_info=True)
            await session.rollback()
            raise StorageError("Server error") from e
    return wrapper


# ---------- Helpers ----------
def parse_date(value, field: str = "dateKey") -> dt.date:
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str) or not DATE_RE.match(value):
        raise ValidationError(f"Invalid {field} (expected YYYY-MM-DD)")
    try:
        return dt.date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid {field} (expected YYYY-MM-DD)")


def parse_time(value) -> dt.time:
    if isinstance(value, dt.time):
        return value
    if not isinstance(value, str) or not TIME_RE.match(value.strip()):
        raise ValidationError("Invalid time (expected HH:MM)")
    try:
        return dt.time.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError("Invalid time (expected HH:MM)")


def _require(fields: dict, names):
    missing = [n for n in names if fields.get(n) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")


def _check_lengths(model, values: dict):
    """Reject strings longer than their VARCHAR column before the database does."""
    for column, value in values.items():
        length = getattr(model.__table__.c[column].type, "length", None)
        if length and isinstance(value, str) and len(value) > length:
            raise ValidationError(f"{column} must be at most {length} characters")


def _insert_for(session: AsyncSession):
    """Pick the dialect insert construct that supports ON CONFLICT."""
    name = session.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert
    if name == "sqlite":
        return sqlite.insert
    raise StorageError(f"Upsert not supported on {name}")


# ---------- Day configs ----------
@_storage_errors
async def get_all_day_configs(session: AsyncSession):
    return (await session.execute(select(DateConfig))).scalars().all()


@_storage_errors
async def upsert_day_config(session: AsyncSession, date_key, partial: dict | None) -> dict:
    date_obj = parse_date(date_key)
    present = partial_update(partial)
    if "dayType" in present and present["dayType"] not in VALID_DAY_TYPES:
        raise ValidationError("dayType must be 'A' or 'B'")
    if "isAccess" in present:
        present["isAccess"] = bool(present["isAccess"])
    _check_lengths(DateConfig, {DAY_CONFIG_COLUMNS[f]: v for f, v in present.items()})

    initial = merge_day_config(None, present)
    insert = _insert_for(session)
    stmt = insert(DateConfig).values(
        date_key=date_obj,
        **{DAY_CONFIG_COLUMNS[f]: v for f, v in initial.items()},
    )
    # Only supplied fields are overwritten; the rest keep their stored value
    update_set = {DAY_CONFIG_COLUMNS[f]: stmt.excluded[DAY_CONFIG_COLUMNS[f]] for f in present}
    update_set["updated_at"] = func.now()
    stmt = stmt.on_conflict_do_update(index_elements=[DateConfig.date_key], set_=update_set)
    stmt = stmt.returning(DateConfig.color, DateConfig.day_type, DateConfig.is_access)

    row = (await session.execute(stmt)).one()
    await session.commit()

    logger.debug("Upserted date config %s: %s", date_obj, present)
    return {"color": row.color, "dayType": row.day_type, "isAccess": bool(row.is_access)}


# ---------- Events ----------
@_storage_errors
async def get_events(session: AsyncSession, start_date, end_date, department: str | None = None):
    start = parse_date(start_date, "startDate")
    end = parse_date(end_date, "endDate")

    query = select(Event).where(Event.date_key >= start, Event.date_key <= end)
    if department and department != ALL_DEPARTMENTS:
        query = query.where(Event.department == department)
    query = query.order_by(Event.date_key, Event.time, Event.id)

    return (await session.execute(query)).scalars().all()


@_storage_errors
async def insert_event(session: AsyncSession, fields: dict) -> Event:
    _require(fields, ("date", "title", "time", "department"))
    _check_lengths(Event, {"title": fields["title"], "department": fields["department"]})
    event = Event(
        date_key=parse_date(fields["date"]),
        title=fields["title"],
        time=parse_time(fields["time"]),
        department=fields["department"],
        description=fields.get("description") or None,
    )
    session.add(event)
    await session.commit()
    logger.info("Created event %s on %s (%s)", event.id, event.date_key, event.department)
    return event


@_storage_errors
async def delete_event(session: AsyncSession, event_id: int) -> None:
    await session.execute(delete(Event).where(Event.id == event_id))
    await session.commit()
    logger.info("Deleted event %s", event_id)


# ---------- Materials ----------
@_storage_errors
async def get_materials(session: AsyncSession, date_key):
    date_obj = parse_date(date_key)
    query = (
        select(Material)
        .where(Material.date_key == date_obj)
        .order_by(Material.grade, Material.id)
    )
    return (await session.execute(query)).scalars().all()


@_storage_errors
async def insert_material(session: AsyncSession, fields: dict) -> Material:
    _require(fields, ("date", "grade", "title", "link"))
    _check_lengths(Material, {"grade": fields["grade"], "title": fields["title"], "type": fields.get("type")})
    material = Material(
        date_key=parse_date(fields["date"]),
        grade=fields["grade"],
        title=fields["title"],
        link=fields["link"],
        type=fields.get("type") or "lesson",
    )
    session.add(material)
    await session.commit()
    logger.info("Created material %s for grade %s on %s", material.id, material.grade, material.date_key)
    return material


@_storage_errors
async def delete_material(session: AsyncSession, material_id: int) -> None:
    await session.execute(delete(Material).where(Material.id == material_id))
    await session.commit()
    logger.info("Deleted material %s", material_id)


# ---------- Descriptions ----------
@_storage_errors
async def get_all_descriptions(session: AsyncSession):
    return (await session.execute(select(DateDescription))).scalars().all()


@_storage_errors
async def upsert_description(session: AsyncSession, date_key, description: str | None) -> None:
    date_obj = parse_date(date_key)
    value = merge_description(None, description)

    insert = _insert_for(session)
    stmt = insert(DateDescription).values(date_key=date_obj, description=value)
    stmt = stmt.on_conflict_do_update(
        index_elements=[DateDescription.date_key],
        set_={"description": stmt.excluded.description, "updated_at": func.now()},
    )
    await session.execute(stmt)
    await session.commit()
    logger.debug("Upserted description for %s", date_obj)


# ---------- Health ----------
@_storage_errors
async def ping(session: AsyncSession) -> None:
    await session.execute(text("SELECT 1"))

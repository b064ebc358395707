# school_calendar/merge.py
"""
Merge rules for date-keyed calendar records.

Write side: partial day-config updates are coalesced onto the stored row, so a
client sending only ``color`` keeps the existing ``dayType`` and ``isAccess``.

Read side: flat rows are grouped into sparse mappings keyed by ``YYYY-MM-DD``.
A date with no rows never appears in the output.
"""
import datetime as dt

DAY_CONFIG_FIELDS = ("color", "dayType", "isAccess")
DAY_CONFIG_DEFAULTS = {"color": None, "dayType": None, "isAccess": False}


def _is_present(field: str, value) -> bool:
    if value is None:
        return False
    # "" for a string field means "not sent"; False for isAccess is a real value
    if field != "isAccess" and value == "":
        return False
    return True


def partial_update(partial: dict | None) -> dict:
    """Return only the day-config fields the client actually supplied."""
    partial = partial or {}
    return {f: partial[f] for f in DAY_CONFIG_FIELDS if f in partial and _is_present(f, partial[f])}


def merge_day_config(existing: dict | None, partial: dict | None) -> dict:
    """
    Coalesce ``partial`` onto ``existing`` field by field.

    Present incoming values win; absent ones keep the stored value, or the
    default when there is no stored row yet.
    """
    merged = dict(DAY_CONFIG_DEFAULTS)
    if existing:
        merged.update({f: existing.get(f, merged[f]) for f in DAY_CONFIG_FIELDS})
    merged.update(partial_update(partial))
    return merged


def merge_description(existing: str | None, text: str | None) -> str | None:
    # The only reason to call is to set the text, so it always replaces
    return text


# ---------- Formatting ----------
def format_date(value: dt.date) -> str:
    if isinstance(value, dt.datetime):
        value = value.date()
    return value.isoformat()


def format_time(value) -> str:
    """Render a time of day as HH:MM, truncating any seconds."""
    if isinstance(value, (dt.time, dt.datetime)):
        return f"{value.hour:02d}:{value.minute:02d}"
    return str(value)[:5]


def day_config_to_dict(row) -> dict:
    return {
        "color": row.color,
        "dayType": row.day_type,
        "isAccess": bool(row.is_access),
    }


def event_to_dict(row) -> dict:
    return {
        "id": row.id,
        "title": row.title,
        "time": format_time(row.time),
        "department": row.department,
        "description": row.description,
    }


def material_to_dict(row) -> dict:
    return {
        "id": row.id,
        "title": row.title,
        "link": row.link,
        "type": row.type,
    }


# ---------- Grouping ----------
def group_day_configs(rows) -> dict:
    return {format_date(r.date_key): day_config_to_dict(r) for r in rows}


def group_descriptions(rows) -> dict:
    return {format_date(r.date_key): r.description for r in rows}


def group_events(rows) -> dict:
    events_by_date: dict[str, list] = {}
    for r in rows:
        events_by_date.setdefault(format_date(r.date_key), []).append(r)

    # sorted() is stable, so rows with equal times keep store order
    return {
        key: [event_to_dict(r) for r in sorted(group, key=lambda r: format_time(r.time))]
        for key, group in events_by_date.items()
    }


def group_materials(rows) -> dict:
    """Group materials by date, then grade, keeping creation order within a grade."""
    materials: dict[str, dict[str, list]] = {}
    for r in rows:
        by_grade = materials.setdefault(format_date(r.date_key), {})
        by_grade.setdefault(r.grade, []).append(material_to_dict(r))
    return materials

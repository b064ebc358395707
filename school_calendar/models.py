# school_calendar/models.py
import datetime as dt

from sqlalchemy import String, Date, Time, Text, Boolean, Integer, DateTime, CheckConstraint, false, func
from sqlalchemy.orm import Mapped, mapped_column
from school_calendar.db import Base


class DateConfig(Base):
    __tablename__ = "date_configs"
    __table_args__ = (
        CheckConstraint("day_type IN ('A', 'B')", name="ck_date_configs_day_type"),
    )

    date_key: Mapped[dt.date] = mapped_column(Date, primary_key=True)
    color: Mapped[str | None] = mapped_column(String(7), nullable=True)       # "#rrggbb"
    day_type: Mapped[str | None] = mapped_column(String(1), nullable=True)    # "A" / "B"
    is_access: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date_key: Mapped[dt.date] = mapped_column(Date, index=True)
    title: Mapped[str] = mapped_column(String(255))
    time: Mapped[dt.time] = mapped_column(Time)
    department: Mapped[str] = mapped_column(String(50))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())


class Material(Base):
    __tablename__ = "daily_materials"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date_key: Mapped[dt.date] = mapped_column(Date, index=True)
    grade: Mapped[str] = mapped_column(String(4))
    title: Mapped[str] = mapped_column(String(255))
    link: Mapped[str] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(20), default="lesson", server_default="lesson")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())


class DateDescription(Base):
    __tablename__ = "date_descriptions"

    date_key: Mapped[dt.date] = mapped_column(Date, primary_key=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime, server_default=func.now())

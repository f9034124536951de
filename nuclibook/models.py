from __future__ import annotations

from datetime import datetime, timedelta, timezone

from sqlalchemy import BigInteger, Boolean, CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_millis(when: datetime) -> int:
    """datetime -> epoch in millisecondi (datetime naive considerati UTC)."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return (when - EPOCH) // timedelta(milliseconds=1)


def from_millis(millis: int) -> datetime:
    return EPOCH + timedelta(milliseconds=millis)


class StaffRole(Base):
    __tablename__ = "staff_roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    label: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    staff: Mapped[list["Staff"]] = relationship(back_populates="role")

    def __repr__(self) -> str:
        return f"StaffRole({self.label})"


class Staff(Base):
    __tablename__ = "staff"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    role_id: Mapped[int] = mapped_column(ForeignKey("staff_roles.id"), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    role: Mapped["StaffRole"] = relationship(back_populates="staff", lazy="joined")
    actions: Mapped[list["ActionLog"]] = relationship(back_populates="staff")

    def __repr__(self) -> str:
        return f"Staff({self.username}, {self.name})"


class ActionLog(Base):
    """
    Voce del registro azioni (audit).
    - when_ms: epoch in millisecondi, esposto come datetime UTC da `when`
    - staff: chi ha eseguito l'azione (caricato subito, serve anche a sessione chiusa)
    - action_id: codice ActionKind
    Una voce non viene mai modificata dopo la creazione (vedi action_logger).
    """
    __tablename__ = "action_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    when_ms: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    staff_id: Mapped[int] = mapped_column(ForeignKey("staff.id"), nullable=False)
    action_id: Mapped[int] = mapped_column(Integer, nullable=False)
    associated_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    staff: Mapped["Staff"] = relationship(back_populates="actions", lazy="joined")

    @property
    def when(self) -> datetime:
        return from_millis(self.when_ms)

    @when.setter
    def when(self, value: datetime) -> None:
        self.when_ms = to_millis(value)

    def __repr__(self) -> str:
        return f"ActionLog({self.id}, action={self.action_id}, staff={self.staff_id})"


class Tracer(Base):
    __tablename__ = "tracers"
    __table_args__ = (CheckConstraint("order_time >= 0", name="ck_tracer_order_time"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    order_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)  # giorni
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    therapies: Mapped[list["Therapy"]] = relationship(back_populates="tracer_required")

    def __repr__(self) -> str:
        return f"Tracer({self.name}, {self.order_time} giorni)"


class CameraType(Base):
    __tablename__ = "camera_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    label: Mapped[str] = mapped_column(String(64), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    cameras: Mapped[list["Camera"]] = relationship(back_populates="camera_type")

    def __repr__(self) -> str:
        return f"CameraType({self.label})"


class Camera(Base):
    __tablename__ = "cameras"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    camera_type_id: Mapped[int] = mapped_column(ForeignKey("camera_types.id"), nullable=False)
    room_number: Mapped[str] = mapped_column(String(16), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    camera_type: Mapped["CameraType"] = relationship(back_populates="cameras", lazy="joined")


class Therapy(Base):
    __tablename__ = "therapies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    tracer_required_id: Mapped[int | None] = mapped_column(ForeignKey("tracers.id"), nullable=True)
    tracer_dose: Mapped[str | None] = mapped_column(String(32), nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    tracer_required: Mapped["Tracer | None"] = relationship(back_populates="therapies", lazy="joined")

    # le collezioni servono per il cascade; la lettura ordinata passa da store.list_related
    booking_pattern_sections: Mapped[list["BookingPatternSection"]] = relationship(
        back_populates="therapy", cascade="all, delete-orphan", passive_deletes=True
    )
    patient_questions: Mapped[list["PatientQuestion"]] = relationship(
        back_populates="therapy", cascade="all, delete-orphan", passive_deletes=True
    )
    therapy_camera_types: Mapped[list["TherapyCameraType"]] = relationship(
        back_populates="therapy", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"Therapy({self.name})"


class BookingPatternSection(Base):
    __tablename__ = "booking_pattern_sections"
    __table_args__ = (
        CheckConstraint("min_length >= 0", name="ck_bps_min_length"),
        CheckConstraint("min_length <= max_length", name="ck_bps_min_max"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    therapy_id: Mapped[int] = mapped_column(ForeignKey("therapies.id", ondelete="CASCADE"), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    busy: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    min_length: Mapped[int] = mapped_column(Integer, nullable=False)  # minuti
    max_length: Mapped[int] = mapped_column(Integer, nullable=False)  # minuti

    therapy: Mapped["Therapy"] = relationship(back_populates="booking_pattern_sections")


class PatientQuestion(Base):
    __tablename__ = "patient_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    therapy_id: Mapped[int] = mapped_column(ForeignKey("therapies.id", ondelete="CASCADE"), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    therapy: Mapped["Therapy"] = relationship(back_populates="patient_questions")


class TherapyCameraType(Base):
    __tablename__ = "therapy_camera_types"

    therapy_id: Mapped[int] = mapped_column(
        ForeignKey("therapies.id", ondelete="CASCADE"), primary_key=True
    )
    camera_type_id: Mapped[int] = mapped_column(ForeignKey("camera_types.id"), primary_key=True)

    therapy: Mapped["Therapy"] = relationship(back_populates="therapy_camera_types")
    camera_type: Mapped["CameraType"] = relationship(lazy="joined")

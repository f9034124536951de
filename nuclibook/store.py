"""
Accesso generico alle entità.

Tutte le funzioni ricevono la sessione aperta dal chiamante (vedi db.db_session):
la durata della connessione resta confinata al context manager.
"""
from __future__ import annotations

import enum
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from .errors import NotFound
from .models import (
    ActionLog,
    BookingPatternSection,
    Camera,
    CameraType,
    PatientQuestion,
    Staff,
    StaffRole,
    Therapy,
    TherapyCameraType,
    Tracer,
)

T = TypeVar("T")


class RelationKind(enum.Enum):
    BOOKING_PATTERN_SECTIONS = "booking_pattern_sections"
    PATIENT_QUESTIONS = "patient_questions"
    CAMERA_TYPES = "camera_types"


# ordinamento "naturale" per le liste complete
_ORDER_BY: dict[type, tuple[Any, ...]] = {
    StaffRole: (StaffRole.label,),
    Staff: (Staff.name, Staff.id),
    Tracer: (Tracer.name, Tracer.id),
    CameraType: (CameraType.label, CameraType.id),
    Camera: (Camera.room_number, Camera.id),
    Therapy: (Therapy.name, Therapy.id),
    ActionLog: (ActionLog.when_ms, ActionLog.id),
}


def get(s: Session, model: type[T], entity_id: Any) -> T:
    entity = s.get(model, entity_id)
    if entity is None:
        raise NotFound(model.__name__, entity_id)
    return entity


def list_all(s: Session, model: type[T], enabled_only: bool = False) -> list[T]:
    q = select(model)
    if enabled_only and hasattr(model, "enabled"):
        q = q.where(model.enabled.is_(True))
    q = q.order_by(*_ORDER_BY.get(model, (model.id,)))
    return list(s.scalars(q).unique())


def list_related(s: Session, owner_id: int, kind: RelationKind) -> list:
    """Righe collegate a una terapia, nell'ordine restituito dal DB (non ordinate)."""
    if kind is RelationKind.BOOKING_PATTERN_SECTIONS:
        q = select(BookingPatternSection).where(BookingPatternSection.therapy_id == owner_id)
    elif kind is RelationKind.PATIENT_QUESTIONS:
        q = select(PatientQuestion).where(PatientQuestion.therapy_id == owner_id)
    elif kind is RelationKind.CAMERA_TYPES:
        q = (
            select(CameraType)
            .join(TherapyCameraType, TherapyCameraType.camera_type_id == CameraType.id)
            .where(TherapyCameraType.therapy_id == owner_id)
        )
    else:
        raise ValueError(f"Relazione non supportata: {kind}")
    return [row for row in s.scalars(q) if row is not None]


def create(s: Session, entity: Any) -> Any:
    s.add(entity)
    s.flush()
    return entity.id


def delete(s: Session, model: type, entity_id: Any) -> None:
    s.delete(get(s, model, entity_id))
    s.flush()

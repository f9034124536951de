from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import delete as sql_delete, func, select

from . import action_logger, store
from .action_logger import ActionKind
from .db import Base, db_session, get_engine
from .errors import ConstraintViolation, InvalidState
from .logging_config import get_logger
from .models import (
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
from .projections import flatten_display_fields, therapy_display_fields

logger = get_logger(__name__)


# =========================
# Bootstrap DB
# =========================
def init_db() -> None:
    """Crea le tabelle se non esistono."""
    Base.metadata.create_all(bind=get_engine())


# =========================
# Helper / DTO
# =========================
@dataclass(frozen=True)
class SectionIn:
    busy: bool
    min_length: int
    max_length: int


def _check_section(sec: SectionIn) -> None:
    if sec.min_length < 0 or sec.min_length > sec.max_length:
        raise ConstraintViolation(
            f"Sezione non valida: min={sec.min_length}, max={sec.max_length} (serve 0 <= min <= max)."
        )


def _add_sections(s, therapy_id: int, sections: Iterable[SectionIn]) -> None:
    for sequence, sec in enumerate(sections):
        _check_section(sec)
        s.add(
            BookingPatternSection(
                therapy_id=therapy_id,
                sequence=sequence,
                busy=sec.busy,
                min_length=sec.min_length,
                max_length=sec.max_length,
            )
        )


def _add_questions(s, therapy_id: int, questions: Iterable[str]) -> None:
    for sequence, description in enumerate(questions):
        s.add(PatientQuestion(therapy_id=therapy_id, sequence=sequence, description=description.strip()))


def _link_camera_types(s, therapy_id: int, camera_type_ids: Iterable[int]) -> None:
    for ct_id in dict.fromkeys(camera_type_ids):
        store.get(s, CameraType, ct_id)
        s.add(TherapyCameraType(therapy_id=therapy_id, camera_type_id=ct_id))


# =========================
# Staff
# =========================
def create_staff_role(actor_id: int | None, label: str) -> int:
    """
    Crea un ruolo. actor_id=None è ammesso solo prima che esista uno staff
    (bootstrap): non c'è ancora nessuno a cui attribuire la voce nel registro.
    """
    with db_session() as s:
        if actor_id is None and s.scalar(select(func.count()).select_from(Staff)):
            raise InvalidState("Serve un membro dello staff per creare un ruolo.")
        role_id = store.create(s, StaffRole(label=label.strip()))
        if actor_id is not None:
            action_logger.log_action(s, actor_id, ActionKind.CREATE_STAFF_ROLE, associated_id=role_id)
        return role_id


def create_staff(actor_id: int | None, username: str, name: str, role_id: int) -> int:
    """
    Crea un membro dello staff. actor_id=None solo per il primo utente
    (bootstrap): in quel caso l'azione è attribuita allo staff appena creato.
    """
    with db_session() as s:
        store.get(s, StaffRole, role_id)
        staff_id = store.create(s, Staff(username=username.strip().lower(), name=name.strip(), role_id=role_id))
        action_logger.log_action(
            s, actor_id if actor_id is not None else staff_id, ActionKind.CREATE_STAFF, associated_id=staff_id
        )
        return staff_id


def disable_staff(actor_id: int, staff_id: int) -> bool:
    with db_session() as s:
        staff = store.get(s, Staff, staff_id)
        if not staff.enabled:
            return False
        staff.enabled = False
        logger.info("Staff %s disabilitato da staff %s", staff_id, actor_id)
        action_logger.log_action(s, actor_id, ActionKind.DISABLE_STAFF, associated_id=staff_id)
        return True


# =========================
# Tracer / camere
# =========================
def create_tracer(actor_id: int, name: str, order_time: int) -> int:
    if order_time < 0:
        raise ConstraintViolation("Il tempo d'ordine del tracer deve essere >= 0 giorni.")
    with db_session() as s:
        tracer_id = store.create(s, Tracer(name=name.strip(), order_time=order_time))
        action_logger.log_action(s, actor_id, ActionKind.CREATE_TRACER, associated_id=tracer_id)
        return tracer_id


def create_camera_type(actor_id: int, label: str) -> int:
    with db_session() as s:
        ct_id = store.create(s, CameraType(label=label.strip()))
        action_logger.log_action(s, actor_id, ActionKind.CREATE_CAMERA_TYPE, associated_id=ct_id)
        return ct_id


def create_camera(actor_id: int, camera_type_id: int, room_number: str) -> int:
    with db_session() as s:
        store.get(s, CameraType, camera_type_id)
        camera_id = store.create(s, Camera(camera_type_id=camera_type_id, room_number=room_number.strip()))
        action_logger.log_action(s, actor_id, ActionKind.CREATE_CAMERA, associated_id=camera_id)
        return camera_id


# =========================
# Terapie (use case core)
# =========================
def create_therapy(
    actor_id: int,
    name: str,
    tracer_id: int,
    tracer_dose: str | None = None,
    camera_type_ids: Iterable[int] = (),
    sections: Iterable[SectionIn] = (),
    questions: Iterable[str] = (),
) -> int:
    """
    Use case: creare una terapia prenotabile.
    - verifica il tracer richiesto
    - salva sezioni del booking pattern e domande nell'ordine ricevuto
    - collega i tipi di camera idonei
    """
    with db_session() as s:
        store.get(s, Tracer, tracer_id)
        therapy_id = store.create(s, Therapy(name=name.strip(), tracer_required_id=tracer_id, tracer_dose=tracer_dose))

        _add_sections(s, therapy_id, sections)
        _add_questions(s, therapy_id, questions)
        _link_camera_types(s, therapy_id, camera_type_ids)

        action_logger.log_action(s, actor_id, ActionKind.CREATE_THERAPY, associated_id=therapy_id, note=name.strip())
        return therapy_id


def set_therapy_camera_types(actor_id: int, therapy_id: int, camera_type_ids: Iterable[int]) -> None:
    """Sostituisce i tipi di camera idonei (cancella i legami e li ricrea)."""
    with db_session() as s:
        store.get(s, Therapy, therapy_id)
        s.execute(sql_delete(TherapyCameraType).where(TherapyCameraType.therapy_id == therapy_id))
        _link_camera_types(s, therapy_id, camera_type_ids)
        action_logger.log_action(s, actor_id, ActionKind.EDIT_THERAPY, associated_id=therapy_id, note="camera types")


def set_therapy_booking_pattern(actor_id: int, therapy_id: int, sections: Iterable[SectionIn]) -> None:
    with db_session() as s:
        store.get(s, Therapy, therapy_id)
        s.execute(sql_delete(BookingPatternSection).where(BookingPatternSection.therapy_id == therapy_id))
        _add_sections(s, therapy_id, sections)
        action_logger.log_action(s, actor_id, ActionKind.EDIT_THERAPY, associated_id=therapy_id, note="booking pattern")


def set_therapy_enabled(actor_id: int, therapy_id: int, enabled: bool) -> bool:
    with db_session() as s:
        therapy = store.get(s, Therapy, therapy_id)
        if therapy.enabled == enabled:
            return False
        therapy.enabled = enabled
        action_logger.log_action(
            s, actor_id, ActionKind.EDIT_THERAPY, associated_id=therapy_id, note="enabled" if enabled else "disabled"
        )
        return True


def delete_therapy(actor_id: int, therapy_id: int) -> None:
    """Cancella la terapia con le sue sezioni, domande e legami ai tipi di camera."""
    with db_session() as s:
        therapy = store.get(s, Therapy, therapy_id)
        name = therapy.name
        store.delete(s, Therapy, therapy_id)
        logger.info("Terapia %s (%s) cancellata da staff %s", therapy_id, name, actor_id)
        action_logger.log_action(s, actor_id, ActionKind.DELETE_THERAPY, associated_id=therapy_id, note=name)


# =========================
# Registro azioni
# =========================
def correct_action_log_note(actor_id: int, entry_id: int, note: str | None) -> int:
    with db_session() as s:
        return action_logger.correct_note(s, entry_id, note, corrected_by=actor_id)


# =========================
# Liste "flat" (safe fuori dalla sessione)
# =========================
def staff_roles_flat(enabled_only: bool = True) -> list[dict]:
    with db_session() as s:
        return [
            {"id": r.id, "label": r.label, "enabled": r.enabled}
            for r in store.list_all(s, StaffRole, enabled_only=enabled_only)
        ]


def staff_flat(enabled_only: bool = True) -> list[dict]:
    with db_session() as s:
        return [
            {
                "id": m.id,
                "username": m.username,
                "name": m.name,
                "role-id": m.role_id,
                "role": m.role.label,
                "enabled": m.enabled,
            }
            for m in store.list_all(s, Staff, enabled_only=enabled_only)
        ]


def tracers_flat(enabled_only: bool = True) -> list[dict]:
    with db_session() as s:
        return [
            {"id": t.id, "name": t.name, "order-time": t.order_time}
            for t in store.list_all(s, Tracer, enabled_only=enabled_only)
        ]


def camera_types_flat(enabled_only: bool = True) -> list[dict]:
    with db_session() as s:
        return [{"id": ct.id, "label": ct.label} for ct in store.list_all(s, CameraType, enabled_only=enabled_only)]


def cameras_flat(enabled_only: bool = True) -> list[dict]:
    with db_session() as s:
        return [
            {
                "id": c.id,
                "room-number": c.room_number,
                "camera-type-id": c.camera_type_id,
                "camera-type": c.camera_type.label,
            }
            for c in store.list_all(s, Camera, enabled_only=enabled_only)
        ]


def therapy_flat(therapy_id: int) -> dict:
    with db_session() as s:
        therapy = store.get(s, Therapy, therapy_id)
        return flatten_display_fields(therapy_display_fields(s, therapy))


def therapies_flat(enabled_only: bool = True) -> list[dict]:
    with db_session() as s:
        return [
            flatten_display_fields(therapy_display_fields(s, t))
            for t in store.list_all(s, Therapy, enabled_only=enabled_only)
        ]


def action_log_flat(limit: int | None = 200, staff_id: int | None = None) -> list[dict]:
    with db_session() as s:
        return [
            {
                "id": e.id,
                "when": e.when.isoformat(),
                "staff-id": e.staff_id,
                "staff": e.staff.name,
                "action-id": e.action_id,
                "associated-id": e.associated_id,
                "note": e.note,
            }
            for e in action_logger.list_entries(s, limit=limit, staff_id=staff_id)
        ]


def staff_is_active(staff_id: int) -> bool:
    with db_session() as s:
        staff = s.get(Staff, staff_id)
        return staff is not None and staff.enabled

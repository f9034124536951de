"""
Registro azioni (audit) append-only.

Ogni caso d'uso che modifica dati registra esattamente una voce ActionLog
nella stessa sessione. Le voci non si modificano: l'unica eccezione è la
correzione amministrativa della nota (correct_note), che lascia a sua volta
traccia nel registro.
"""
from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import event, select
from sqlalchemy.orm import Session, object_session

from . import store
from .errors import InvalidState
from .logging_config import get_logger
from .models import ActionLog, Staff

audit_logger = get_logger("nuclibook.audit")

# flag in Session.info che abilita la correzione amministrativa
ADMIN_CORRECTION = "action_log_admin_correction"


class ActionKind(enum.IntEnum):
    """Codici azione condivisi tra chi scrive il registro e i report (valori stabili)."""

    CREATE_STAFF = 1
    DISABLE_STAFF = 2
    CREATE_THERAPY = 3
    EDIT_THERAPY = 4
    DELETE_THERAPY = 5
    CREATE_TRACER = 6
    CREATE_CAMERA_TYPE = 7
    CREATE_CAMERA = 8
    CREATE_STAFF_ROLE = 9
    CORRECT_ACTION_LOG = 10


@event.listens_for(ActionLog, "before_update")
def _block_update(mapper, connection, target: ActionLog) -> None:
    s = object_session(target)
    if s is None or not s.info.get(ADMIN_CORRECTION):
        raise InvalidState(f"La voce {target.id} del registro azioni non è modificabile.")


@event.listens_for(ActionLog, "before_delete")
def _block_delete(mapper, connection, target: ActionLog) -> None:
    raise InvalidState(f"La voce {target.id} del registro azioni non può essere cancellata.")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def record(
    s: Session,
    actor_id: int,
    when: datetime,
    action_kind: int,
    associated_id: int | None = None,
    note: str | None = None,
) -> int:
    """
    Registra un'azione e ritorna l'id della voce.
    Solleva NotFound se lo staff non esiste; gli errori del DB risalgono
    (mai una voce persa in silenzio).
    """
    staff = store.get(s, Staff, actor_id)
    entry = ActionLog(
        staff=staff,
        action_id=int(action_kind),
        associated_id=associated_id,
        note=note,
    )
    entry.when = when
    entry_id = store.create(s, entry)

    audit_logger.info(
        "AUDIT: entry=%s action=%s staff=%s associated=%s note=%r",
        entry_id,
        int(action_kind),
        actor_id,
        associated_id,
        note,
    )
    return entry_id


def log_action(
    s: Session,
    actor_id: int,
    action_kind: int,
    associated_id: int | None = None,
    note: str | None = None,
) -> int:
    """Come record(), con timestamp = adesso."""
    return record(s, actor_id, utc_now(), action_kind, associated_id=associated_id, note=note)


def list_entries(s: Session, limit: int | None = None, staff_id: int | None = None) -> list[ActionLog]:
    """
    Voci in ordine di timestamp non decrescente (a parità: id di inserimento).
    Con limit ritorna le ultime `limit` voci, sempre in ordine crescente.
    """
    q = select(ActionLog)
    if staff_id is not None:
        q = q.where(ActionLog.staff_id == staff_id)

    if limit is None:
        return list(s.scalars(q.order_by(ActionLog.when_ms.asc(), ActionLog.id.asc())))

    latest = list(s.scalars(q.order_by(ActionLog.when_ms.desc(), ActionLog.id.desc()).limit(limit)))
    latest.reverse()
    return latest


def correct_note(s: Session, entry_id: int, note: str | None, corrected_by: int) -> int:
    """
    Correzione amministrativa della nota di una voce.
    Registra a sua volta una voce CORRECT_ACTION_LOG; ritorna il suo id.
    """
    entry = store.get(s, ActionLog, entry_id)
    s.info[ADMIN_CORRECTION] = True
    try:
        entry.note = note
        s.flush()
    finally:
        s.info.pop(ADMIN_CORRECTION, None)

    return log_action(s, corrected_by, ActionKind.CORRECT_ACTION_LOG, associated_id=entry_id, note=note)

"""
Viste derivate per la visualizzazione delle terapie.

Le funzioni "pure" lavorano su sequenze già materializzate; le tre funzioni
che leggono dal DB (ordered_booking_pattern, ordered_patient_questions,
therapy_camera_types) non sollevano mai per una collezione che non si riesce
a leggere: loggano un warning e ritornano una lista vuota, così una relazione
incompleta non blocca l'intera pagina.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import store
from .errors import InvalidState, StoreUnavailable
from .logging_config import get_logger
from .models import BookingPatternSection, CameraType, PatientQuestion, Therapy
from .store import RelationKind

logger = get_logger(__name__)

IDLIST = "IDLIST"
CUSTOM = "CUSTOM"


@dataclass(frozen=True)
class TaggedValue:
    """Valore per il renderer: lista di id (IDLIST) o testo già pronto (CUSTOM)."""
    tag: str
    value: str

    def encode(self) -> str:
        return f"{self.tag}:{self.value}"


@dataclass(frozen=True)
class CameraTypeSummary:
    shown: tuple[str, ...]
    hidden: tuple[str, ...]

    @property
    def total(self) -> int:
        return len(self.shown) + len(self.hidden)

    @property
    def truncated(self) -> bool:
        return bool(self.hidden)

    @property
    def hidden_count(self) -> int:
        return len(self.hidden)


# =========================
# Lettura collezioni
# =========================
def _fetch_related(s: Session, therapy: Therapy, kind: RelationKind) -> list:
    try:
        return store.list_related(s, therapy.id, kind)
    except (StoreUnavailable, SQLAlchemyError) as e:
        logger.warning("Lettura %s della terapia %s fallita, uso lista vuota: %s", kind.value, therapy.id, e)
        return []


def by_sequence(items: Iterable) -> list:
    """Ordinamento stabile per sequence crescente (idempotente)."""
    return sorted(items, key=lambda item: item.sequence)


def by_label(types: Iterable[CameraType]) -> list[CameraType]:
    return sorted(types, key=lambda ct: ct.label)


def ordered_booking_pattern(s: Session, therapy: Therapy) -> list[BookingPatternSection]:
    return by_sequence(_fetch_related(s, therapy, RelationKind.BOOKING_PATTERN_SECTIONS))


def ordered_patient_questions(s: Session, therapy: Therapy) -> list[PatientQuestion]:
    return by_sequence(_fetch_related(s, therapy, RelationKind.PATIENT_QUESTIONS))


def therapy_camera_types(s: Session, therapy: Therapy) -> list[CameraType]:
    return _fetch_related(s, therapy, RelationKind.CAMERA_TYPES)


# =========================
# Formati per il front end
# =========================
def booking_pattern_compact_form(sections: Sequence[BookingPatternSection]) -> str:
    """[[busy(0|1),min,max],...] letto dal widget di prenotazione: formato fisso."""
    if not sections:
        return "[]"
    triples = [f"[{1 if bps.busy else 0},{bps.min_length},{bps.max_length}]" for bps in sections]
    return "[" + ",".join(triples) + "]"


def summarise_camera_types(types: Iterable[CameraType]) -> CameraTypeSummary:
    labels = [ct.label for ct in by_label(types)]
    return CameraTypeSummary(shown=tuple(labels[:2]), hidden=tuple(labels[2:]))


def render_camera_type_summary(summary: CameraTypeSummary, key: object) -> str:
    if summary.total == 0:
        return "None"

    shown = list(summary.shown)
    if not summary.truncated:
        return "<br />".join(shown)

    block_id = f"more-camera-types-{key}"
    hidden = "<br />".join(summary.hidden)
    return (
        "<br />".join(shown) + "<br />"
        + f'<div id="{block_id}" style="display: none;">{hidden}</div>'
        + f'<span>+ {summary.hidden_count} more '
        + f'(<a href="javascript:;" class="more-camera-types" data-target="{block_id}">show</a>)</span>'
    )


def camera_type_summary(types: Iterable[CameraType], key: object) -> str:
    """`key` (l'id della terapia) rende univoco il blocco espandibile nella pagina."""
    return render_camera_type_summary(summarise_camera_types(types), key)


def camera_type_id_list(types: Iterable[CameraType]) -> str:
    # "0" = nessun vincolo sul tipo di camera
    ids = [str(ct.id) for ct in by_label(types)]
    return ",".join(ids) if ids else "0"


def patient_question_list_encoded(questions: Iterable[PatientQuestion]) -> str:
    ordered = by_sequence(questions)
    if not ordered:
        return "[]"
    quoted = ["'" + pq.description.replace("'", "\\\\'") + "'" for pq in ordered]
    return "[" + ",".join(quoted) + "]"


def _section_advice(bps: BookingPatternSection) -> str:
    if bps.min_length == bps.max_length:
        length = f"{bps.min_length}"
    else:
        length = f"{bps.min_length}-{bps.max_length}"
    return f"{length} mins {'booking' if bps.busy else 'wait'}"


def advice_text(therapy: Therapy, sections: Iterable[BookingPatternSection]) -> str:
    """Le sezioni vengono riordinate per sequence: l'ordine in ingresso non conta."""
    tracer = therapy.tracer_required
    if tracer is None:
        raise InvalidState(f"La terapia {therapy.id} non ha un tracer associato.")

    advice = (
        f"This therapy requires {tracer.name} ({tracer.order_time} day order).\n\n"
        "The recommended booking pattern is "
    )
    ordered = by_sequence(sections)
    if not ordered:
        return advice + "unknown."
    return advice + ", ".join(_section_advice(bps) for bps in ordered) + "."


def therapy_advice(s: Session, therapy: Therapy) -> str:
    return advice_text(therapy, ordered_booking_pattern(s, therapy))


# =========================
# Campi per il renderer
# =========================
def therapy_display_fields(s: Session, therapy: Therapy) -> dict[str, str | TaggedValue | None]:
    tracer = therapy.tracer_required
    if tracer is None:
        raise InvalidState(f"La terapia {therapy.id} non ha un tracer associato.")

    sections = ordered_booking_pattern(s, therapy)
    questions = ordered_patient_questions(s, therapy)
    camera_types = therapy_camera_types(s, therapy)

    return {
        "id": str(therapy.id),
        "name": therapy.name,
        "camera-type-ids": TaggedValue(IDLIST, camera_type_id_list(camera_types)),
        "camera-type-summary": camera_type_summary(camera_types, therapy.id),
        "patient-questions": TaggedValue(CUSTOM, patient_question_list_encoded(questions)),
        "booking-pattern-sections": TaggedValue(CUSTOM, booking_pattern_compact_form(sections)),
        "tracer-required-id": str(tracer.id),
        "tracer-required-name": tracer.name,
        "tracer-dose": therapy.tracer_dose,
        "therapy-tracer-dose": therapy.tracer_dose,
        "advice": advice_text(therapy, sections),
    }


def flatten_display_fields(fields: dict[str, str | TaggedValue | None]) -> dict[str, str | None]:
    """
    Forma attesa dal renderer HTML: IDLIST:<ids> come valore,
    testo CUSTOM con prefisso sia sulla chiave sia sul valore.
    """
    flat: dict[str, str | None] = {}
    for key, value in fields.items():
        if isinstance(value, TaggedValue):
            if value.tag == CUSTOM:
                key = f"{CUSTOM}:{key}"
            flat[key] = value.encode()
        else:
            flat[key] = value
    return flat

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import STAFF_HEADER
from .errors import ConstraintViolation, InvalidState, NotFound, StoreUnavailable
from .logging_config import get_logger, setup_logging
from .seed import seed_base
from .services import (
    SectionIn,
    action_log_flat,
    camera_types_flat,
    cameras_flat,
    correct_action_log_note,
    create_camera,
    create_camera_type,
    create_staff,
    create_staff_role,
    create_therapy,
    create_tracer,
    delete_therapy,
    disable_staff,
    init_db,
    set_therapy_booking_pattern,
    set_therapy_camera_types,
    set_therapy_enabled,
    staff_flat,
    staff_is_active,
    staff_roles_flat,
    therapies_flat,
    therapy_flat,
    tracers_flat,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Crea tabelle e seed base (idempotente)
    setup_logging()
    init_db()
    seed_base()
    yield


app = FastAPI(title="Nuclibook API", version="1.0.0", lifespan=lifespan)



# Errori di dominio -> HTTP

_STATUS_BY_ERROR = {
    NotFound: status.HTTP_404_NOT_FOUND,
    ConstraintViolation: status.HTTP_409_CONFLICT,
    InvalidState: 422,
    StoreUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


async def _domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    code = _STATUS_BY_ERROR[type(exc)]
    if code >= 500:
        logger.error("%s %s: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, code, exc)
    return JSONResponse(status_code=code, content={"detail": str(exc)})


for _error in _STATUS_BY_ERROR:
    app.add_exception_handler(_error, _domain_error_handler)



# Schemi

class StaffRoleIn(BaseModel):
    label: str = Field(..., min_length=1)


class StaffIn(BaseModel):
    username: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    role_id: int


class TracerIn(BaseModel):
    name: str = Field(..., min_length=1)
    order_time: int = Field(..., ge=0)


class CameraTypeIn(BaseModel):
    label: str = Field(..., min_length=1)


class CameraIn(BaseModel):
    camera_type_id: int
    room_number: str = Field(..., min_length=1)


class SectionModel(BaseModel):
    busy: bool
    min_length: int = Field(..., ge=0)
    max_length: int = Field(..., ge=0)

    def to_section(self) -> SectionIn:
        return SectionIn(busy=self.busy, min_length=self.min_length, max_length=self.max_length)


class TherapyIn(BaseModel):
    name: str = Field(..., min_length=1)
    tracer_id: int
    tracer_dose: str | None = None
    camera_type_ids: list[int] = []
    sections: list[SectionModel] = []
    questions: list[str] = []


class CameraTypeIdsIn(BaseModel):
    camera_type_ids: list[int]


class BookingPatternIn(BaseModel):
    sections: list[SectionModel]


class NoteIn(BaseModel):
    note: str | None = None



# Staff che esegue l'azione (identificazione, non autenticazione)

def get_actor_id(x_staff_id: int = Header(..., alias=STAFF_HEADER)) -> int:
    if not staff_is_active(x_staff_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Staff non valido o disabilitato")
    return x_staff_id



# Liste

@app.get("/api/staff")
def api_staff(include_disabled: bool = Query(False, alias="all")) -> list[dict]:
    return staff_flat(enabled_only=not include_disabled)


@app.get("/api/staff-roles")
def api_staff_roles(include_disabled: bool = Query(False, alias="all")) -> list[dict]:
    return staff_roles_flat(enabled_only=not include_disabled)


@app.get("/api/tracers")
def api_tracers(include_disabled: bool = Query(False, alias="all")) -> list[dict]:
    return tracers_flat(enabled_only=not include_disabled)


@app.get("/api/camera-types")
def api_camera_types(include_disabled: bool = Query(False, alias="all")) -> list[dict]:
    return camera_types_flat(enabled_only=not include_disabled)


@app.get("/api/cameras")
def api_cameras(include_disabled: bool = Query(False, alias="all")) -> list[dict]:
    return cameras_flat(enabled_only=not include_disabled)


@app.get("/api/therapies")
def api_therapies(include_disabled: bool = Query(False, alias="all")) -> list[dict]:
    return therapies_flat(enabled_only=not include_disabled)


@app.get("/api/therapies/{therapy_id}")
def api_therapy(therapy_id: int) -> dict:
    return therapy_flat(therapy_id)


@app.get("/api/action-log")
def api_action_log(
    limit: int = Query(200, ge=1, le=5000),
    staff_id: int | None = None,
) -> list[dict]:
    return action_log_flat(limit=limit, staff_id=staff_id)



# Modifiche (registrate nel log azioni)

@app.post("/api/staff-roles")
def api_create_staff_role(payload: StaffRoleIn, actor_id: int = Depends(get_actor_id)) -> dict[str, Any]:
    return {"ok": True, "id": create_staff_role(actor_id, payload.label)}


@app.post("/api/staff")
def api_create_staff(payload: StaffIn, actor_id: int = Depends(get_actor_id)) -> dict[str, Any]:
    return {"ok": True, "id": create_staff(actor_id, payload.username, payload.name, payload.role_id)}


@app.post("/api/staff/{staff_id}/disable")
def api_disable_staff(staff_id: int, actor_id: int = Depends(get_actor_id)) -> dict[str, Any]:
    return {"ok": disable_staff(actor_id, staff_id)}


@app.post("/api/tracers")
def api_create_tracer(payload: TracerIn, actor_id: int = Depends(get_actor_id)) -> dict[str, Any]:
    return {"ok": True, "id": create_tracer(actor_id, payload.name, payload.order_time)}


@app.post("/api/camera-types")
def api_create_camera_type(payload: CameraTypeIn, actor_id: int = Depends(get_actor_id)) -> dict[str, Any]:
    return {"ok": True, "id": create_camera_type(actor_id, payload.label)}


@app.post("/api/cameras")
def api_create_camera(payload: CameraIn, actor_id: int = Depends(get_actor_id)) -> dict[str, Any]:
    return {"ok": True, "id": create_camera(actor_id, payload.camera_type_id, payload.room_number)}


@app.post("/api/therapies")
def api_create_therapy(payload: TherapyIn, actor_id: int = Depends(get_actor_id)) -> dict[str, Any]:
    therapy_id = create_therapy(
        actor_id,
        payload.name,
        tracer_id=payload.tracer_id,
        tracer_dose=payload.tracer_dose,
        camera_type_ids=payload.camera_type_ids,
        sections=[sec.to_section() for sec in payload.sections],
        questions=payload.questions,
    )
    return {"ok": True, "id": therapy_id}


@app.put("/api/therapies/{therapy_id}/camera-types")
def api_set_camera_types(
    therapy_id: int, payload: CameraTypeIdsIn, actor_id: int = Depends(get_actor_id)
) -> dict[str, Any]:
    set_therapy_camera_types(actor_id, therapy_id, payload.camera_type_ids)
    return {"ok": True}


@app.put("/api/therapies/{therapy_id}/booking-pattern")
def api_set_booking_pattern(
    therapy_id: int, payload: BookingPatternIn, actor_id: int = Depends(get_actor_id)
) -> dict[str, Any]:
    set_therapy_booking_pattern(actor_id, therapy_id, [sec.to_section() for sec in payload.sections])
    return {"ok": True}


@app.post("/api/therapies/{therapy_id}/enable")
def api_enable_therapy(therapy_id: int, actor_id: int = Depends(get_actor_id)) -> dict[str, Any]:
    return {"ok": set_therapy_enabled(actor_id, therapy_id, True)}


@app.post("/api/therapies/{therapy_id}/disable")
def api_disable_therapy(therapy_id: int, actor_id: int = Depends(get_actor_id)) -> dict[str, Any]:
    return {"ok": set_therapy_enabled(actor_id, therapy_id, False)}


@app.delete("/api/therapies/{therapy_id}")
def api_delete_therapy(therapy_id: int, actor_id: int = Depends(get_actor_id)) -> dict[str, Any]:
    delete_therapy(actor_id, therapy_id)
    return {"ok": True}


@app.patch("/api/action-log/{entry_id}/note")
def api_correct_action_log_note(entry_id: int, payload: NoteIn, actor_id: int = Depends(get_actor_id)) -> dict[str, Any]:
    """Correzione amministrativa: crea a sua volta una voce nel registro."""
    return {"ok": True, "id": correct_action_log_note(actor_id, entry_id, payload.note)}

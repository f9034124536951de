from __future__ import annotations

from sqlalchemy import select

from .db import db_session
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


def seed_base() -> None:
    """
    Popola dati minimi (idempotente):
    - ruoli e amministratore
    - tracer
    - tipi di camera e camere
    - una terapia di esempio con booking pattern e domande
    I dati di bootstrap non passano dal registro azioni (non c'è ancora un attore).
    """
    with db_session() as s:
        # Ruoli
        for label in ("Administrator", "Radiographer", "Receptionist"):
            if s.execute(select(StaffRole).where(StaffRole.label == label)).scalar_one_or_none() is None:
                s.add(StaffRole(label=label))
        s.flush()

        admin_role = s.execute(select(StaffRole).where(StaffRole.label == "Administrator")).scalar_one()
        if s.execute(select(Staff).where(Staff.username == "admin")).scalar_one_or_none() is None:
            s.add(Staff(username="admin", name="Administrator", role_id=admin_role.id))

        # Tracer (nome, giorni d'ordine)
        tracers = [("FDG", 1), ("Tc-99m", 0), ("Ga-68 DOTATATE", 3)]
        for name, order_time in tracers:
            if s.execute(select(Tracer).where(Tracer.name == name)).scalar_one_or_none() is None:
                s.add(Tracer(name=name, order_time=order_time))

        # Tipi di camera
        for label in ("Gamma Camera", "PET-CT", "SPECT-CT"):
            if s.execute(select(CameraType).where(CameraType.label == label)).scalar_one_or_none() is None:
                s.add(CameraType(label=label))
        s.flush()

        def camera_type(label: str) -> CameraType:
            return s.execute(select(CameraType).where(CameraType.label == label)).scalar_one()

        def add_camera(label: str, room: str) -> None:
            ct = camera_type(label)
            if s.execute(
                select(Camera).where(Camera.camera_type_id == ct.id, Camera.room_number == room)
            ).scalar_one_or_none() is None:
                s.add(Camera(camera_type_id=ct.id, room_number=room))

        add_camera("PET-CT", "1")
        add_camera("Gamma Camera", "2")
        add_camera("SPECT-CT", "3")

        # Terapia di esempio
        if s.execute(select(Therapy).where(Therapy.name == "PET Scan")).scalar_one_or_none() is None:
            fdg = s.execute(select(Tracer).where(Tracer.name == "FDG")).scalar_one()
            therapy = Therapy(name="PET Scan", tracer_required_id=fdg.id, tracer_dose="400 MBq")
            s.add(therapy)
            s.flush()

            pattern = [(True, 10, 10), (False, 45, 60), (True, 20, 30)]
            for sequence, (busy, min_length, max_length) in enumerate(pattern):
                s.add(
                    BookingPatternSection(
                        therapy_id=therapy.id, sequence=sequence, busy=busy, min_length=min_length, max_length=max_length
                    )
                )

            questions = ["Are you pregnant?", "Are you diabetic?", "Have you fasted for 6 hours?"]
            for sequence, description in enumerate(questions):
                s.add(PatientQuestion(therapy_id=therapy.id, sequence=sequence, description=description))

            s.add(TherapyCameraType(therapy_id=therapy.id, camera_type_id=camera_type("PET-CT").id))

"""Pytest configuration and fixtures."""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from nuclibook import db
from nuclibook.api_main import app
from nuclibook.services import (
    SectionIn,
    create_camera_type,
    create_staff,
    create_staff_role,
    create_therapy,
    create_tracer,
    init_db,
)

# SQLite in memoria: ogni test parte da un DB vuoto
TEST_DATABASE_URL = "sqlite://"


@pytest.fixture(autouse=True)
def test_db() -> Generator[None, None, None]:
    engine = db.configure_engine(TEST_DATABASE_URL)
    init_db()
    yield
    db.Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def actor_id() -> int:
    """Amministratore creato con il bootstrap (nessun attore precedente)."""
    role_id = create_staff_role(None, "Administrator")
    return create_staff(None, "admin", "Administrator", role_id)


@pytest.fixture
def tracer_id(actor_id: int) -> int:
    return create_tracer(actor_id, "FDG", 1)


@pytest.fixture
def camera_type_ids(actor_id: int) -> dict[str, int]:
    return {label: create_camera_type(actor_id, label) for label in ("Z", "A", "M")}


@pytest.fixture
def therapy_id(actor_id: int, tracer_id: int, camera_type_ids: dict[str, int]) -> int:
    return create_therapy(
        actor_id,
        "PET Scan",
        tracer_id=tracer_id,
        tracer_dose="400 MBq",
        camera_type_ids=camera_type_ids.values(),
        sections=[SectionIn(True, 10, 10), SectionIn(False, 5, 15)],
        questions=["Are you pregnant?", "Do you have O'Leary's form?"],
    )


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Client senza lifespan: niente seed sul DB di sviluppo."""
    yield TestClient(app)

from __future__ import annotations


class NuclibookError(Exception):
    """Base per tutti gli errori di dominio."""


class NotFound(NuclibookError):
    """Entità referenziata assente."""

    def __init__(self, model: str, entity_id: object) -> None:
        super().__init__(f"{model} {entity_id} non trovato.")
        self.model = model
        self.entity_id = entity_id


class InvalidState(NuclibookError):
    """Relazione obbligatoria mancante su un'entità già letta."""


class ConstraintViolation(NuclibookError):
    """Scrittura che viola una foreign key o un vincolo di unicità."""


class StoreUnavailable(NuclibookError):
    """Errore transitorio del database (I/O, lock, connessione)."""

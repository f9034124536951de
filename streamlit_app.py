from __future__ import annotations

import os

import requests
import streamlit as st

st.set_page_config(page_title="Nuclibook", layout="wide")

API_BASE = os.getenv("API_BASE", "http://127.0.0.1:8000")
STAFF_HEADER = "X-Staff-Id"



# HTTP client

def api_get(path: str, params: dict | None = None) -> dict | list:
    r = requests.get(f"{API_BASE}{path}", params=params, timeout=10)
    r.raise_for_status()
    return r.json()


def api_post(path: str, payload: dict, staff_id: int) -> dict:
    headers = {"Content-Type": "application/json", STAFF_HEADER: str(staff_id)}
    r = requests.post(f"{API_BASE}{path}", headers=headers, json=payload, timeout=10)

    if r.status_code == 403:
        raise PermissionError("403 Forbidden (membro dello staff non valido o disabilitato).")
    if r.status_code >= 400:
        try:
            detail = r.json().get("detail")
        except ValueError:
            detail = r.text
        raise RuntimeError(f"{r.status_code}: {detail}")
    return r.json()


@st.cache_data(ttl=10)
def load_staff() -> list[dict]:
    return api_get("/api/staff")


@st.cache_data(ttl=10)
def load_tracers() -> list[dict]:
    return api_get("/api/tracers")


@st.cache_data(ttl=10)
def load_camera_types() -> list[dict]:
    return api_get("/api/camera-types")



# Sidebar: chi sta operando

with st.sidebar:
    st.header("Operatore")
    try:
        staff = load_staff()
    except Exception as e:
        st.error(f"API non raggiungibile o errore: {e}")
        st.stop()

    operatore = st.selectbox(
        "Membro dello staff",
        options=staff,
        format_func=lambda m: f"{m['name']} ({m['role']})",
        key="operatore",
    )
    st.divider()
    st.caption(f"API: {API_BASE}")



# UI

st.title("Nuclibook")

tab1, tab2, tab3, tab4 = st.tabs(["Terapie", "Tipi di camera", "Staff", "Registro azioni"])



# TAB 1 - Terapie

with tab1:
    st.subheader("Terapie")

    try:
        therapies = api_get("/api/therapies")
    except Exception as e:
        st.error(f"Errore caricamento terapie: {e}")
        therapies = []

    if not therapies:
        st.info("Nessuna terapia presente.")
    for t in therapies:
        with st.expander(f"{t['name']} | {t['tracer-required-name']} {t.get('tracer-dose') or ''}"):
            st.text(t["advice"])
            st.markdown(f"Tipi di camera:<br />{t['camera-type-summary']}", unsafe_allow_html=True)
            st.code(t["CUSTOM:booking-pattern-sections"].removeprefix("CUSTOM:"), language="json")

    st.divider()
    with st.expander("Crea nuova terapia"):
        tracers = load_tracers()
        camera_types = load_camera_types()

        nome = st.text_input("Nome", key="th_nome")
        tracer = st.selectbox(
            "Tracer",
            options=tracers,
            format_func=lambda tr: f"{tr['name']} ({tr['order-time']} giorni)",
            key="th_tracer",
        )
        dose = st.text_input("Dose (opzionale)", key="th_dose")
        scelti = st.multiselect(
            "Tipi di camera", options=camera_types, format_func=lambda ct: ct["label"], key="th_ct"
        )
        pattern = st.text_area("Booking pattern (una riga per sezione: busy|wait min[-max])", key="th_pattern")
        domande = st.text_area("Domande al paziente (una per riga)", key="th_domande")

        if st.button("Crea terapia", key="th_submit"):
            try:
                sections = []
                for line in pattern.splitlines():
                    if not line.strip():
                        continue
                    kind, lengths = line.split()
                    min_s, _, max_s = lengths.partition("-")
                    sections.append(
                        {"busy": kind == "busy", "min_length": int(min_s), "max_length": int(max_s or min_s)}
                    )
                payload = {
                    "name": nome.strip(),
                    "tracer_id": tracer["id"],
                    "tracer_dose": dose.strip() or None,
                    "camera_type_ids": [ct["id"] for ct in scelti],
                    "sections": sections,
                    "questions": [q.strip() for q in domande.splitlines() if q.strip()],
                }
                res = api_post("/api/therapies", payload, staff_id=operatore["id"])
                st.success(f"Terapia creata: {res.get('id')}")
            except ValueError:
                st.error("Booking pattern non valido (es. 'busy 10' oppure 'wait 45-60').")
            except Exception as e:
                st.error(str(e))



# TAB 2 - Tipi di camera

with tab2:
    st.subheader("Tipi di camera e camere")

    label = st.text_input("Nuovo tipo di camera", key="ct_label")
    if st.button("Crea tipo", key="ct_submit"):
        if not label.strip():
            st.error("L'etichetta è obbligatoria.")
        else:
            try:
                res = api_post("/api/camera-types", {"label": label.strip()}, staff_id=operatore["id"])
                st.success(f"Tipo creato: {res.get('id')}")
                load_camera_types.clear()
            except Exception as e:
                st.error(str(e))

    try:
        for c in api_get("/api/cameras"):
            st.write(f"- Stanza **{c['room-number']}** | {c['camera-type']}")
    except Exception as e:
        st.error(f"Errore caricamento camere: {e}")



# TAB 3 - Staff

with tab3:
    st.subheader("Staff")
    for m in staff:
        st.write(f"- {m['name']} ({m['username']}) | {m['role']}")



# TAB 4 - Registro azioni

with tab4:
    st.subheader("Registro azioni")
    try:
        entries = api_get("/api/action-log", params={"limit": 200})
        if not entries:
            st.info("Registro vuoto.")
        for e in reversed(entries):
            st.write(
                f"[{e['id']}] {e['when']} | **{e['staff']}** | azione {e['action-id']} "
                f"| id {e['associated-id'] or '-'} | {e['note'] or ''}"
            )
    except Exception as e:
        st.error(f"Errore registro: {e}")

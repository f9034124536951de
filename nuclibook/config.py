from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# DB SQLite su file nella root del progetto (accanto a streamlit_app.py)
DB_PATH = Path(__file__).resolve().parents[1] / "nuclibook.sqlite"

DATABASE_URL = os.getenv("NUCLIBOOK_DATABASE_URL", f"sqlite:///{DB_PATH}")
SQL_ECHO = os.getenv("NUCLIBOOK_SQL_ECHO", "0").lower() in ("1", "true", "yes")
LOG_LEVEL = os.getenv("NUCLIBOOK_LOG_LEVEL", "INFO")

# Header con cui le richieste identificano il membro dello staff che agisce
STAFF_HEADER = "X-Staff-Id"

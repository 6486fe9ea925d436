"""Named motion template library."""

import logging
import sqlite3
from pathlib import Path
from typing import Optional

from .templates import MotionTemplate

logger = logging.getLogger(__name__)

_COLUMNS = MotionTemplate.field_names()


class TemplateLibrary:
    """SQLite-based persistent storage for motion templates."""

    DEFAULT_TEMPLATES = {
        "default": MotionTemplate(),
        "grbl": MotionTemplate(
            pre_cut="M3 S{S}",
            post_cut="M5",
            plane_fast_move="G0 X{X:F3} Y{Y:F3}",
            plane_linear_move="G1 X{X:F3} Y{Y:F3} F{F:F0}",
            depth_fast_move="G0 Z{Z:F3}",
            depth_linear_move="G1 Z{Z:F3} F{F:F0}",
            cw_arc_move="G2 X{X:F3} Y{Y:F3} I{I:F3} J{J:F3} F{F:F0}",
            ccw_arc_move="G3 X{X:F3} Y{Y:F3} I{I:F3} J{J:F3} F{F:F0}",
        ),
    }

    def __init__(self, db_path: Optional[Path] = None):
        if db_path is None:
            config_dir = Path.home() / ".config" / "curve2gcode"
            config_dir.mkdir(parents=True, exist_ok=True)
            db_path = config_dir / "templates.db"

        self.db_path = db_path
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        """Get a database connection."""
        return sqlite3.connect(self.db_path)

    def _init_db(self) -> None:
        """Initialize database schema and default templates."""
        columns = ",\n".join(f"{c} TEXT NOT NULL" for c in _COLUMNS)
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS templates (
                    name TEXT PRIMARY KEY,
                    {columns}
                )
            """)

            # Insert defaults if the table is empty
            cursor.execute("SELECT COUNT(*) FROM templates")
            if cursor.fetchone()[0] == 0:
                logger.info("Seeding template library at %s", self.db_path)
                cursor.executemany(
                    self._insert_sql(),
                    [self._row(name, t) for name, t in self.DEFAULT_TEMPLATES.items()],
                )

            conn.commit()

    @staticmethod
    def _insert_sql() -> str:
        placeholders = ", ".join("?" for _ in range(len(_COLUMNS) + 1))
        return f"INSERT OR REPLACE INTO templates (name, {', '.join(_COLUMNS)}) VALUES ({placeholders})"

    @staticmethod
    def _row(name: str, template: MotionTemplate) -> tuple:
        data = template.to_dict()
        return (name, *(data[c] for c in _COLUMNS))

    @staticmethod
    def _from_row(row: tuple) -> MotionTemplate:
        return MotionTemplate(**dict(zip(_COLUMNS, row[1:])))

    def add(self, name: str, template: MotionTemplate) -> None:
        """Add or update a template."""
        with self._get_conn() as conn:
            conn.execute(self._insert_sql(), self._row(name, template))
            conn.commit()

    def remove(self, name: str) -> None:
        """Remove a template by name."""
        with self._get_conn() as conn:
            conn.execute("DELETE FROM templates WHERE name = ?", (name,))
            conn.commit()

    def get(self, name: str) -> Optional[MotionTemplate]:
        """Get a template by name."""
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT name, {', '.join(_COLUMNS)} FROM templates WHERE name = ?", (name,))
            row = cursor.fetchone()
            if row:
                return self._from_row(row)
            return None

    def names(self) -> list[str]:
        """Get all template names."""
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM templates ORDER BY name")
            return [row[0] for row in cursor.fetchall()]

    def get_all(self) -> dict[str, MotionTemplate]:
        """Get all templates keyed by name."""
        with self._get_conn() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT name, {', '.join(_COLUMNS)} FROM templates ORDER BY name")
            return {row[0]: self._from_row(row) for row in cursor.fetchall()}

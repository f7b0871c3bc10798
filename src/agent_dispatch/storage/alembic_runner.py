"""Programmatic Alembic entry points for the dispatch schema."""

from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config

# src/agent_dispatch/storage/ -> repository root holding alembic.ini and alembic/
_PROJECT_ROOT = Path(__file__).resolve().parents[3]


def alembic_config(db_path: Path) -> Config:
    """Alembic config bound to ``db_path`` and the project's migration scripts."""

    config = Config(str(_PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(_PROJECT_ROOT / "alembic"))
    config.set_main_option("sqlalchemy.url", f"sqlite:///{db_path}")
    return config


def upgrade_head(db_path: Path) -> None:
    command.upgrade(alembic_config(db_path), "head")

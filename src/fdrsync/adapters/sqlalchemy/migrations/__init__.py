"""Alembic migration helpers for the acquisition schema."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config

from fdrsync.config import get_database_uri

PROJECT_ROOT: Final[Path] = Path(__file__).resolve().parents[5]
PYPROJECT_PATH: Final[Path] = PROJECT_ROOT / "pyproject.toml"
MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine


def _load_pyproject_options() -> dict[str, str]:
    """Read the ``[tool.alembic]`` table, if the project file is around."""

    try:
        with PYPROJECT_PATH.open("rb") as pyproject_file:
            document = tomllib.load(pyproject_file)
    except FileNotFoundError:
        return {}

    alembic_section = document.get("tool", {}).get("alembic", {})
    return {str(key): str(value) for key, value in alembic_section.items()}


def _resolve(path: str) -> Path:
    candidate = Path(path)
    return candidate if candidate.is_absolute() else PROJECT_ROOT / candidate


def _build_config() -> Config:
    options = _load_pyproject_options()
    # Installed wheels carry no pyproject.toml; fall back to the packaged scripts.
    config = Config(toml_file=str(PYPROJECT_PATH)) if options else Config()

    script_location = options.get("script_location")
    script_path = _resolve(script_location) if script_location else MIGRATIONS_PATH
    if not script_path.is_dir():
        script_path = MIGRATIONS_PATH
    config.set_main_option("script_location", str(script_path))

    prepend_sys_path = options.get("prepend_sys_path")
    if prepend_sys_path is not None:
        config.set_main_option("prepend_sys_path", str(_resolve(prepend_sys_path).resolve()))

    for key, value in options.items():
        if key in {"script_location", "prepend_sys_path"}:
            continue
        config.set_main_option(key, value)

    config.attributes["pyproject_options"] = options
    return config


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Upgrade the database schema to the latest revision."""

    config = _build_config()
    if engine is not None:
        with engine.begin() as connection:
            config.attributes["connection"] = connection
            command.upgrade(config, "head")
        return
    config.set_main_option("sqlalchemy.url", database_uri or get_database_uri())
    command.upgrade(config, "head")


def current_revision(engine: Engine) -> str | None:
    """Revision the database behind ``engine`` is stamped with."""

    from alembic.runtime.migration import MigrationContext  # noqa: PLC0415

    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()

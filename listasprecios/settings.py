from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    # App
    APP_NAME: str = os.environ.get("APP_NAME", "Listas de Precios")
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")

    # Storage
    INSTANCE_DIR: Path = Path(os.environ.get("INSTANCE_DIR", "instance")).resolve()
    DATABASE_URL: str = os.environ.get(
        "DATABASE_URL", f"sqlite:///{(Path('instance') / 'listas.sqlite').as_posix()}"
    )

    # XLSX uploads
    UPLOAD_DIR: str = os.environ.get("UPLOAD_DIR", "uploads")
    UPLOAD_MAX_MB: int = int(os.environ.get("UPLOAD_MAX_MB", "25"))
    DEFAULT_CURRENCY: str = os.environ.get("DEFAULT_CURRENCY", "USD")

    # Listing
    PAGE_SIZE_DEFAULT: int = int(os.environ.get("PAGE_SIZE_DEFAULT", "20"))
    PAGE_SIZE_MAX: int = int(os.environ.get("PAGE_SIZE_MAX", "100"))

    # Bootstrap admin account (scripts/create_admin.py)
    ADMIN_EMAIL: str = os.environ.get("ADMIN_EMAIL", "admin@example.com")
    ADMIN_PASSWORD: str = os.environ.get("ADMIN_PASSWORD", "admin123")

    def __post_init__(self) -> None:
        db_url_env_set = os.environ.get("DATABASE_URL") is not None

        # Always resolve INSTANCE_DIR; the database and upload paths depend on it.
        object.__setattr__(self, "INSTANCE_DIR", Path(self.INSTANCE_DIR).resolve())

        # Without an explicit DATABASE_URL the DB always lives inside INSTANCE_DIR.
        if not db_url_env_set and self.DATABASE_URL == Settings.DATABASE_URL:
            abs_db = (self.INSTANCE_DIR / "listas.sqlite").resolve()
            object.__setattr__(self, "DATABASE_URL", f"sqlite:///{abs_db.as_posix()}")
            return

        db = str(self.DATABASE_URL or "").strip()
        if not db:
            abs_db = (self.INSTANCE_DIR / "listas.sqlite").resolve()
            object.__setattr__(self, "DATABASE_URL", f"sqlite:///{abs_db.as_posix()}")
            return

        # sqlite:///instance/listas.sqlite -> sqlite:////abs/project/instance/listas.sqlite
        if db.startswith("sqlite:///") and not db.startswith("sqlite:////"):
            path_part = db[len("sqlite:///") :]
            if "?" in path_part:
                path_part = path_part.split("?", 1)[0]
            if path_part == ":memory:":
                return

            p = Path(path_part)
            if not p.is_absolute():
                project_root = Path(__file__).resolve().parents[1]
                abs_path = (project_root / p).resolve()
                object.__setattr__(self, "DATABASE_URL", f"sqlite:///{abs_path.as_posix()}")

    @property
    def upload_path(self) -> Path:
        return (self.INSTANCE_DIR / str(self.UPLOAD_DIR)).resolve()

    def ensure_instance(self) -> None:
        self.INSTANCE_DIR.mkdir(parents=True, exist_ok=True)
        self.upload_path.mkdir(parents=True, exist_ok=True)

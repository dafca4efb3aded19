import os
from dataclasses import dataclass, field
from pathlib import Path

BASE_DIR = Path.cwd()
DB_DIR = BASE_DIR / "db"


def _default_db_url() -> str:
    return os.environ.get("WISHLIST_DB_URL") or f"sqlite:///{DB_DIR / 'wish.db'}"


@dataclass(frozen=True)
class Settings:
    db_url: str = field(default_factory=_default_db_url)

    @property
    def db_path(self) -> Path | None:
        prefix = "sqlite:///"
        if not self.db_url.startswith(prefix) or self.db_url.endswith(":memory:"):
            return None
        return Path(self.db_url[len(prefix) :])

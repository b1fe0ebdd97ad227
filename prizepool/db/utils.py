from pathlib import Path
from typing import Any, Optional

LOTTERY_TABLE_PREFIX = "lottery_"
VERSION_TABLE = "prizepool_alembic_version"


def resolve_sqlite_url(url: str, project_root: Path) -> str:
    """Resolve 'sqlite:///./relative/path' to an absolute sqlite:/// URL.

    Keeps other URL forms unchanged.
    """
    prefix = "sqlite:///./"
    if not url.startswith(prefix):
        return url
    rel = url[len(prefix) :]
    return f"sqlite:///{(project_root / rel).resolve()}"


def include_lottery_object(
    obj: Any, name: Optional[str], type_: str, reflected: bool, compare_to: Any
) -> bool:
    """Alembic ``include_object`` hook limiting autogenerate to lottery tables.

    The lottery schema may share a database with other applications, so tables
    without the ``lottery_`` prefix are neither created nor reported as drift.
    """
    if type_ == "table":
        return bool(name) and name.startswith(LOTTERY_TABLE_PREFIX)
    table = getattr(obj, "table", None)
    if table is not None:
        return table.name.startswith(LOTTERY_TABLE_PREFIX)
    return True

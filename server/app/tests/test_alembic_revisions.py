import re
from pathlib import Path

from app import models  # noqa: F401
from app.db import Base

VERSIONS_DIR = Path(__file__).resolve().parents[2] / "alembic" / "versions"
REVISION_RE = re.compile(r'^revision = "([^"]+)"', re.MULTILINE)
DOWN_REVISION_RE = re.compile(r'^down_revision = (None|"[^"]+")', re.MULTILINE)


def _migrations() -> dict[str, str]:
    return {path.name: path.read_text(encoding="utf-8") for path in sorted(VERSIONS_DIR.glob("*.py"))}


def test_revision_ids_fit_version_table_limit():
    """Postgres alembic_version.version_num is varchar(32)."""
    too_long = []
    for name, text in _migrations().items():
        match = REVISION_RE.search(text)
        assert match, f"{name} has no revision id"
        if len(match.group(1)) > 32:
            too_long.append((name, match.group(1)))

    assert not too_long, f"Alembic revision IDs must be <= 32 chars: {too_long}"


def test_migrations_form_a_single_chain():
    revisions = set()
    parents = []
    for text in _migrations().values():
        revisions.add(REVISION_RE.search(text).group(1))
        parents.append(DOWN_REVISION_RE.search(text).group(1).strip('"'))

    assert parents.count("None") == 1
    heads = revisions - set(parents)
    assert len(heads) == 1


def test_migrations_create_every_model_table():
    source = "\n".join(_migrations().values())
    missing = [table for table in Base.metadata.tables if f'"{table}"' not in source]
    assert not missing

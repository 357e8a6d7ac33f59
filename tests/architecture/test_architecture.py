# tests/architecture/test_architecture.py
# Architecture tests enforcing layering rules.
# - domain must not import infrastructure (db, web, http, cache) or outer layers
# - routers must not contain SQL or talk to the database driver
# - services reach storage only through the repositories

import ast
import pathlib
import re
import pytest  # type: ignore[import-not-found]

REPO_ROOT = pathlib.Path(__file__).resolve().parents[2]
PACKAGE = REPO_ROOT / "deckshare"

INFRA_LIBS = {"sqlalchemy", "asyncpg", "fastapi", "starlette", "httpx", "redis", "arq", "prometheus_client"}
SQL_LITERAL = re.compile(r"^\s*(SELECT|INSERT|UPDATE|DELETE|WITH)\s", flags=re.IGNORECASE)


def _iter_py_files(root: pathlib.Path):
    for path in root.rglob("*.py"):
        if "__pycache__" in path.parts:
            continue
        yield path


def _parse(py_path: pathlib.Path) -> ast.AST:
    return ast.parse(py_path.read_text(encoding="utf-8"), filename=str(py_path))


def _collect_imports(py_path: pathlib.Path) -> set[str]:
    """Return set of fully qualified imported module names from file."""
    imports: set[str] = set()
    for node in ast.walk(_parse(py_path)):
        if isinstance(node, ast.Import):
            imports.update(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            imports.add(node.module)
    return imports


def _top_levels(imports: set[str]) -> set[str]:
    return {name.split(".")[0] for name in imports}


def _sql_literals(py_path: pathlib.Path) -> list[str]:
    return [
        node.value
        for node in ast.walk(_parse(py_path))
        if isinstance(node, ast.Constant) and isinstance(node.value, str) and SQL_LITERAL.match(node.value)
    ]


# ---------- Tests ----------

@pytest.mark.architecture
def test_domain_does_not_import_infrastructure():
    for f in _iter_py_files(PACKAGE / "domain"):
        imports = _collect_imports(f)
        bad = _top_levels(imports) & INFRA_LIBS
        assert not bad, f"domain must not import {sorted(bad)}: {f}"
        outer = {m for m in imports if m.startswith("deckshare.") and not m.startswith(("deckshare.domain", "deckshare.constants"))}
        assert not outer, f"domain must not depend on outer layers {sorted(outer)}: {f}"


@pytest.mark.architecture
def test_routers_do_not_contain_sql():
    offenders: list[str] = []
    for f in _iter_py_files(PACKAGE / "routers"):
        # the health probe runs its own trivial query
        if f.name == "health.py":
            continue
        if _sql_literals(f) or _top_levels(_collect_imports(f)) & {"sqlalchemy", "asyncpg"}:
            offenders.append(str(f))
    assert not offenders, "Routers must not contain SQL; offending files:\n" + "\n".join(offenders)


@pytest.mark.architecture
def test_services_use_repositories_for_storage():
    for f in _iter_py_files(PACKAGE / "services"):
        imports = _collect_imports(f)
        assert not _top_levels(imports) & {"sqlalchemy", "asyncpg"}, f"services must not use the driver: {f}"
        assert "deckshare.db.base" not in imports, f"services must not open sessions: {f}"
        assert not _sql_literals(f), f"services must not contain SQL: {f}"

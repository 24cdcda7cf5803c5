from __future__ import annotations

import importlib
import pkgutil
from dataclasses import dataclass
from typing import Callable, Iterable


@dataclass(frozen=True)
class MigrationDefinition:
    """A named schema change.

    ``up``/``down`` run with Alembic's ``op`` proxy installed, the same way an
    Alembic revision's ``upgrade()``/``downgrade()`` do.
    """

    name: str
    up: Callable[[], None]
    down: Callable[[], None] | None = None
    idempotent: bool = False


def ordered(definitions: Iterable[MigrationDefinition]) -> list[MigrationDefinition]:
    items = sorted(definitions, key=lambda item: item.name)
    seen: set[str] = set()
    for item in items:
        if item.name in seen:
            raise ValueError(f"Duplicate migration name detected: {item.name}")
        seen.add(item.name)
    return items


def load_definitions(package: str) -> list[MigrationDefinition]:
    """Discover migration modules in ``package``, sorted by module name.

    A module is a migration when it defines ``upgrade``; ``downgrade`` and a
    boolean ``idempotent`` flag are optional.
    """
    root = importlib.import_module(package)
    definitions: list[MigrationDefinition] = []
    for _, module_name, is_pkg in pkgutil.iter_modules(root.__path__):
        if is_pkg or module_name.startswith("_"):
            continue

        module = importlib.import_module(f"{package}.{module_name}")
        upgrade = getattr(module, "upgrade", None)
        if not callable(upgrade):
            continue
        downgrade = getattr(module, "downgrade", None)
        definitions.append(
            MigrationDefinition(
                name=module_name,
                up=upgrade,
                down=downgrade if callable(downgrade) else None,
                idempotent=bool(getattr(module, "idempotent", False)),
            )
        )
    return ordered(definitions)

import logging
from typing import Iterable, Optional

from .registry import BOOKING_COLUMNS, FUNCTION_TABLE

logger = logging.getLogger(__name__)


class ColumnDependencyGraph:
    """
    Dependency graph between booking sheet columns.

    A function column depends on every column its arguments reference, so
    editing a cell means recomputing its dependents in dependency order.
    """

    def __init__(self, columns: Optional[list] = None):
        self.columns = {column["id"]: column for column in (columns if columns is not None else BOOKING_COLUMNS)}
        self.dependencies: dict[str, set] = {column_id: set() for column_id in self.columns}
        self.dependents: dict[str, set] = {column_id: set() for column_id in self.columns}

        for column_id, column in self.columns.items():
            if column.get("dataType") != "function":
                continue
            for argument in column.get("arguments") or []:
                reference = argument.get("columnReference")
                if not reference:
                    continue
                self.dependencies[column_id].add(reference)
                self.dependents.setdefault(reference, set()).add(column_id)
                self.dependencies.setdefault(reference, set())

    def get_dependents(self, column_id: str) -> list:
        """All columns that (transitively) use this column"""
        visited: set = set()

        def collect(current: str):
            for dependent in self.dependents.get(current, ()):
                if dependent not in visited:
                    visited.add(dependent)
                    collect(dependent)

        collect(column_id)
        return sorted(visited)

    def get_dependencies(self, column_id: str) -> list:
        """All columns this column (transitively) reads from"""
        visited: set = set()

        def collect(current: str):
            for dependency in self.dependencies.get(current, ()):
                if dependency not in visited:
                    visited.add(dependency)
                    collect(dependency)

        collect(column_id)
        return sorted(visited)

    def has_circular_dependencies(self) -> bool:
        visited: set = set()
        stack: set = set()

        def has_cycle(column_id: str) -> bool:
            if column_id in stack:
                return True
            if column_id in visited:
                return False
            visited.add(column_id)
            stack.add(column_id)
            for dependency in self.dependencies.get(column_id, ()):
                if has_cycle(dependency):
                    return True
            stack.discard(column_id)
            return False

        return any(has_cycle(column_id) for column_id in list(self.dependencies))

    def get_columns_to_recompute(self, column_id: str) -> list:
        return [column_id, *self.get_dependents(column_id)]

    def recompute_order(self, changed_ids: Optional[Iterable[str]] = None) -> list:
        """
        Function columns affected by ``changed_ids`` in dependency order.

        Without ``changed_ids`` every function column is returned.
        """
        if changed_ids is None:
            affected = {cid for cid, column in self.columns.items() if column.get("dataType") == "function"}
        else:
            affected = set()
            for changed in changed_ids:
                affected.update(self.get_dependents(changed))
            affected = {cid for cid in affected if self.columns.get(cid, {}).get("dataType") == "function"}

        ordered: list = []
        placed: set = set()

        def place(column_id: str):
            if column_id in placed:
                return
            placed.add(column_id)
            for dependency in sorted(self.dependencies.get(column_id, ())):
                if dependency in affected:
                    place(dependency)
            ordered.append(column_id)

        # Walk in sheet order so independent columns keep a stable order
        for column_id in sorted(affected, key=lambda cid: self.columns[cid].get("order", 0)):
            place(column_id)
        return ordered

    def to_dict(self) -> dict:
        return {
            "dependencies": {cid: sorted(deps) for cid, deps in self.dependencies.items() if deps},
            "dependents": {cid: sorted(deps) for cid, deps in self.dependents.items() if deps},
        }


_default_graph: Optional[ColumnDependencyGraph] = None


def get_default_graph() -> ColumnDependencyGraph:
    global _default_graph
    if _default_graph is None:
        _default_graph = ColumnDependencyGraph()
        if _default_graph.has_circular_dependencies():
            logger.error("❌ Circular dependency detected in booking sheet columns")
    return _default_graph


def _resolve_argument(argument: dict, row: dict):
    reference = argument.get("columnReference")
    if reference:
        value = row.get(reference)
        if value not in (None, ""):
            return value
    return argument.get("value", row.get(reference) if reference else None)


def recompute_row(
    row: dict,
    changed_ids: Optional[Iterable[str]] = None,
    graph: Optional[ColumnDependencyGraph] = None,
) -> dict:
    """
    Re-evaluate the function columns affected by ``changed_ids`` on a booking row.

    Returns a new dict; ``row`` is left untouched. A function that raises keeps
    its previous value.
    """
    graph = graph or get_default_graph()
    data = dict(row)

    for column_id in graph.recompute_order(changed_ids):
        column = graph.columns[column_id]
        function = FUNCTION_TABLE.get(column.get("function") or "")
        if function is None:
            logger.warning(f"⚠️ No function registered for column {column_id}: {column.get('function')}")
            continue

        args = [_resolve_argument(argument, data) for argument in column.get("arguments") or []]
        try:
            value = function(*args)
        except Exception as e:
            logger.warning(f"⚠️ Failed to compute column {column_id}: {e}")
            continue

        data[column_id] = "" if value is None else value

    return data

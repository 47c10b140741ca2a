"""
Authoritative in-memory copy of one notebook document.

Every change goes through `DocumentStore.update`, which stamps the
modification time, tracks dirtiness and notifies subscribers (autosave,
collaboration broadcast). `current` is read at call time by async
callbacks, so they always see the latest committed document.
"""
import re
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, List, Literal, Optional, Union

import structlog

from ..core.errors import CellValidationError
from ..models import (
    CodeCell,
    Notebook,
    NotebookEnv,
    SqlConnection,
    create_cell,
    utc_now_iso,
)

logger = structlog.get_logger(__name__)

PACKAGE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9._-]*[A-Za-z0-9])?$")
VARIABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class UpdateOptions:
    persist: bool = True
    touch: bool = True
    broadcast: bool = True


Transform = Callable[[Notebook], Notebook]
Listener = Callable[[Notebook, UpdateOptions], None]


class DocumentStore:
    """Holds the current notebook and funnels every mutation through one entry point."""

    def __init__(self, notebook: Optional[Notebook] = None):
        self._current: Optional[Notebook] = notebook
        self.dirty = False
        self._listeners: List[Listener] = []
        self._suppress_depth = 0

    @property
    def current(self) -> Optional[Notebook]:
        return self._current

    @property
    def broadcast_suppressed(self) -> bool:
        return self._suppress_depth > 0

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @contextmanager
    def suppress_broadcast(self) -> Iterator[None]:
        """Mutations inside this block are not re-broadcast to collaborators."""
        self._suppress_depth += 1
        try:
            yield
        finally:
            self._suppress_depth -= 1

    def _notify(self, notebook: Notebook, options: UpdateOptions) -> None:
        for listener in list(self._listeners):
            listener(notebook, options)

    def update(self, transform: Transform, persist: bool = True, touch: bool = True) -> Optional[Notebook]:
        """
        Apply `transform` to the current document.

        A transform that returns the same object is a no-op: nothing is
        stamped, dirtied or broadcast.
        """
        current = self._current
        if current is None:
            return None

        next_notebook = transform(current)
        if next_notebook is None or next_notebook is current:
            return current

        if touch:
            next_notebook = next_notebook.model_copy(update={"updated_at": utc_now_iso()})
        self._current = next_notebook
        if persist:
            self.dirty = True

        options = UpdateOptions(persist=persist, touch=touch, broadcast=not self.broadcast_suppressed)
        self._notify(next_notebook, options)
        return next_notebook

    def replace(self, notebook: Notebook, dirty: bool = False) -> Notebook:
        """Install an externally sourced document (load or remote edit) as-is."""
        self._current = notebook
        self.dirty = dirty
        self._notify(notebook, UpdateOptions(persist=False, touch=False, broadcast=False))
        return notebook

    def mark_clean(self) -> None:
        self.dirty = False

    # Cell operations

    def update_cell(self, cell_id: str, transform: Callable, persist: bool = True, touch: bool = True) -> Optional[Notebook]:
        """Apply `transform` to one cell. Unknown ids leave the document untouched."""
        def apply(notebook: Notebook) -> Notebook:
            index = notebook.index_of(cell_id)
            if index < 0:
                return notebook
            cell = notebook.cells[index]
            next_cell = transform(cell)
            if next_cell is cell:
                return notebook
            cells = list(notebook.cells)
            cells[index] = next_cell
            return notebook.model_copy(update={"cells": cells})

        return self.update(apply, persist=persist, touch=touch)

    def add_cell(self, cell: Union[str, object], index: Optional[int] = None):
        """Insert a cell (or a new cell of the given type) at `index`, appending by default."""
        if isinstance(cell, str):
            cell = create_cell(cell)

        def apply(notebook: Notebook) -> Notebook:
            if notebook.find_cell(cell.id) is not None:
                raise CellValidationError(f"Duplicate cell id: {cell.id}", cell.id)
            cells = list(notebook.cells)
            position = len(cells) if index is None else max(0, min(index, len(cells)))
            cells.insert(position, cell)
            return notebook.model_copy(update={"cells": cells})

        self.update(apply)
        return cell

    def delete_cell(self, cell_id: str) -> bool:
        removed = False

        def apply(notebook: Notebook) -> Notebook:
            nonlocal removed
            cells = [c for c in notebook.cells if c.id != cell_id]
            if len(cells) == len(notebook.cells):
                return notebook
            removed = True
            return notebook.model_copy(update={"cells": cells})

        self.update(apply)
        return removed

    def move_cell(self, cell_id: str, direction: Literal["up", "down"]) -> bool:
        moved = False

        def apply(notebook: Notebook) -> Notebook:
            nonlocal moved
            index = notebook.index_of(cell_id)
            target = index - 1 if direction == "up" else index + 1
            if index < 0 or target < 0 or target >= len(notebook.cells):
                return notebook
            cells = list(notebook.cells)
            cells[index], cells[target] = cells[target], cells[index]
            moved = True
            return notebook.model_copy(update={"cells": cells})

        self.update(apply)
        return moved

    def clear_outputs(self) -> Optional[Notebook]:
        def apply(notebook: Notebook) -> Notebook:
            if not any(isinstance(c, CodeCell) and (c.outputs or c.execution) for c in notebook.cells):
                return notebook
            cells = [
                c.model_copy(update={"outputs": [], "execution": None}) if isinstance(c, CodeCell) else c
                for c in notebook.cells
            ]
            return notebook.model_copy(update={"cells": cells})

        return self.update(apply)

    # Document operations

    def rename(self, name: str) -> Optional[Notebook]:
        trimmed = name.strip()
        if not trimmed:
            raise CellValidationError("Notebook name cannot be empty")
        return self.update(
            lambda nb: nb if nb.name == trimmed else nb.model_copy(update={"name": trimmed})
        )

    def set_env(self, env: NotebookEnv) -> Optional[Notebook]:
        return self.update(lambda nb: nb.model_copy(update={"env": env}))

    def _update_env(self, **changes) -> Optional[Notebook]:
        return self.update(
            lambda nb: nb.model_copy(update={"env": nb.env.model_copy(update=changes)})
        )

    def add_dependency(self, name: str, version: str = "*") -> Optional[Notebook]:
        name = name.strip()
        version = version.strip() or "*"
        if not PACKAGE_NAME_PATTERN.match(name):
            raise CellValidationError(f"Invalid package name: {name!r}")
        packages = dict(self._require().env.packages)
        packages[name] = version
        return self._update_env(packages=packages)

    def remove_dependency(self, name: str) -> Optional[Notebook]:
        packages = dict(self._require().env.packages)
        if packages.pop(name, None) is None:
            return self._current
        return self._update_env(packages=packages)

    def set_variable(self, key: str, value: str) -> Optional[Notebook]:
        key = key.strip()
        if not VARIABLE_NAME_PATTERN.match(key):
            raise CellValidationError(f"Invalid variable name: {key!r}")
        variables = dict(self._require().env.variables)
        variables[key] = value
        return self._update_env(variables=variables)

    def remove_variable(self, key: str) -> Optional[Notebook]:
        variables = dict(self._require().env.variables)
        if variables.pop(key, None) is None:
            return self._current
        return self._update_env(variables=variables)

    def add_sql_connection(self, connection: SqlConnection) -> Optional[Notebook]:
        def apply(notebook: Notebook) -> Notebook:
            connections = [c for c in notebook.sql.connections if c.id != connection.id]
            connections.append(connection)
            return notebook.model_copy(
                update={"sql": notebook.sql.model_copy(update={"connections": connections})}
            )

        return self.update(apply)

    def remove_sql_connection(self, connection_id: str) -> Optional[Notebook]:
        def apply(notebook: Notebook) -> Notebook:
            connections = [c for c in notebook.sql.connections if c.id != connection_id]
            if len(connections) == len(notebook.sql.connections):
                return notebook
            return notebook.model_copy(
                update={"sql": notebook.sql.model_copy(update={"connections": connections})}
            )

        return self.update(apply)

    def _require(self) -> Notebook:
        if self._current is None:
            raise CellValidationError("No notebook is loaded")
        return self._current

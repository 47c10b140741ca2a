"""Notebook document model."""
import platform
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator, model_validator

from .base import WireModel, new_id, utc_now_iso
from .cell import NotebookCell, upgrade_legacy_cell
from .sql import SqlConnection


class NotebookEnv(WireModel):
    runtime: str = "python"
    version: str = Field(default_factory=platform.python_version)
    packages: Dict[str, str] = Field(default_factory=dict)
    variables: Dict[str, str] = Field(default_factory=dict)


class NotebookSql(WireModel):
    connections: List[SqlConnection] = Field(default_factory=list)


class Notebook(WireModel):
    """
    A notebook document.

    Cell order is execution and display order. Cell ids are unique.
    Instances are treated as values: every change produces a new copy.
    """
    id: str = Field(default_factory=new_id)
    name: str = "Untitled Notebook"
    env: NotebookEnv = Field(default_factory=NotebookEnv)
    cells: List[NotebookCell] = Field(default_factory=list)
    sql: NotebookSql = Field(default_factory=NotebookSql)
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)
    project_id: Optional[str] = None
    project_order: Optional[int] = None
    published: bool = False
    public_slug: Optional[str] = None

    @field_validator("cells", mode="before")
    @classmethod
    def _upgrade_cells(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [upgrade_legacy_cell(item) for item in value]
        return value

    @model_validator(mode="after")
    def _unique_cell_ids(self) -> "Notebook":
        seen = set()
        for cell in self.cells:
            if cell.id in seen:
                raise ValueError(f"Duplicate cell id: {cell.id}")
            seen.add(cell.id)
        return self

    def find_cell(self, cell_id: str):
        for cell in self.cells:
            if cell.id == cell_id:
                return cell
        return None

    def index_of(self, cell_id: str) -> int:
        for index, cell in enumerate(self.cells):
            if cell.id == cell_id:
                return index
        return -1

    def find_connection(self, connection_id: Optional[str]) -> Optional[SqlConnection]:
        if not connection_id:
            return None
        for connection in self.sql.connections:
            if connection.id == connection_id:
                return connection
        return None


def create_empty_notebook(**fields) -> Notebook:
    """New document with fresh id and timestamps; any field may be overridden."""
    now = utc_now_iso()
    fields.setdefault("created_at", now)
    fields.setdefault("updated_at", now)
    return Notebook(**fields)

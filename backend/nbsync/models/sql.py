"""SQL connections and query results carried by SQL cells."""
from typing import Any, Literal, Optional

from pydantic import Field

from .base import WireModel, new_id

SqlDriver = Literal["postgres"]


class SqlConnectionConfig(WireModel):
    connection_string: str = ""


class SqlConnection(WireModel):
    id: str = Field(default_factory=new_id)
    driver: SqlDriver = "postgres"
    name: str = ""
    config: SqlConnectionConfig = Field(default_factory=SqlConnectionConfig)


class SqlColumn(WireModel):
    name: str
    data_type: Optional[str] = None


class SqlResult(WireModel):
    columns: list[SqlColumn] = Field(default_factory=list)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    row_count: int = 0
    duration_ms: float = 0
    timestamp: str = ""
    assigned_variable: Optional[str] = None
    error: Optional[str] = None

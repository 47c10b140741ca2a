"""Cell and output models for notebook documents."""
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import ConfigDict, Discriminator, Field, Tag

from .base import WireModel, new_id
from .http import HttpRequest, HttpResponse
from .sql import SqlResult

CellType = Literal["code", "markdown", "terminal", "command", "http", "sql"]

# Cell kinds that need a durable id before a live shell can attach to them
TERMINAL_LIKE_TYPES = ("terminal", "command")

DISPLAY_ID_KEY = "display_id"


class StreamOutput(WireModel):
    type: Literal["stream"] = "stream"
    name: Literal["stdout", "stderr"] = "stdout"
    text: str = ""


class DisplayOutput(WireModel):
    """Rich output. A display_id in metadata marks it as replaceable in place."""
    type: Literal["display_data", "execute_result", "update_display_data"] = "display_data"
    data: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def display_id(self) -> Optional[str]:
        value = self.metadata.get(DISPLAY_ID_KEY)
        return value if isinstance(value, str) and value else None


class ErrorOutput(WireModel):
    type: Literal["error"] = "error"
    ename: str = ""
    evalue: str = ""
    traceback: List[str] = Field(default_factory=list)


NotebookOutput = Annotated[
    Union[StreamOutput, DisplayOutput, ErrorOutput],
    Field(discriminator="type"),
]


class OutputExecution(WireModel):
    """Wall-clock bounds of the last run, epoch milliseconds."""
    started: float
    ended: float
    status: Literal["ok", "error", "aborted"] = "ok"


class CodeCell(WireModel):
    id: str = Field(default_factory=new_id)
    type: Literal["code"] = "code"
    language: str = "python"
    source: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    outputs: List[NotebookOutput] = Field(default_factory=list)
    execution: Optional[OutputExecution] = None

    @property
    def exec_count(self) -> Optional[int]:
        display = self.metadata.get("display")
        if isinstance(display, dict):
            count = display.get("execCount")
            if isinstance(count, int) and not isinstance(count, bool):
                return count
        return None

    @property
    def timeout_ms(self) -> Optional[int]:
        value = self.metadata.get("timeoutMs")
        if isinstance(value, int) and not isinstance(value, bool) and value > 0:
            return value
        return None


class MarkdownCell(WireModel):
    id: str = Field(default_factory=new_id)
    type: Literal["markdown"] = "markdown"
    source: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)


class TerminalCell(WireModel):
    id: str = Field(default_factory=new_id)
    type: Literal["terminal"] = "terminal"
    buffer: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)


class CommandCell(WireModel):
    id: str = Field(default_factory=new_id)
    type: Literal["command"] = "command"
    command: str = ""
    notes: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)


class HttpCell(WireModel):
    id: str = Field(default_factory=new_id)
    type: Literal["http"] = "http"
    request: HttpRequest = Field(default_factory=HttpRequest)
    response: Optional[HttpResponse] = None
    assign_variable: Optional[str] = None
    assign_body: Optional[str] = None
    assign_headers: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SqlCell(WireModel):
    id: str = Field(default_factory=new_id)
    type: Literal["sql"] = "sql"
    connection_id: Optional[str] = None
    query: str = ""
    assign_variable: Optional[str] = None
    result: Optional[SqlResult] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class UnknownCell(WireModel):
    """A cell kind this engine does not understand; kept verbatim so it survives a save."""
    model_config = ConfigDict(extra="allow")

    id: str
    type: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


_KNOWN_CELL_TYPES = {"code", "markdown", "terminal", "command", "http", "sql"}


def _cell_tag(value: Any) -> str:
    cell_type = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return cell_type if cell_type in _KNOWN_CELL_TYPES else "unknown"


NotebookCell = Annotated[
    Union[
        Annotated[CodeCell, Tag("code")],
        Annotated[MarkdownCell, Tag("markdown")],
        Annotated[TerminalCell, Tag("terminal")],
        Annotated[CommandCell, Tag("command")],
        Annotated[HttpCell, Tag("http")],
        Annotated[SqlCell, Tag("sql")],
        Annotated[UnknownCell, Tag("unknown")],
    ],
    Discriminator(_cell_tag),
]


def upgrade_legacy_cell(raw: Any) -> Any:
    """Old documents stored terminals as `shell` cells with no buffer."""
    if isinstance(raw, dict) and raw.get("type") == "shell":
        upgraded = {k: v for k, v in raw.items() if k != "type"}
        upgraded["type"] = "terminal"
        upgraded.setdefault("buffer", "")
        return upgraded
    return raw


def create_code_cell(source: str = "", language: str = "python", **kwargs) -> CodeCell:
    return CodeCell(source=source, language=language, **kwargs)


def create_markdown_cell(source: str = "", **kwargs) -> MarkdownCell:
    return MarkdownCell(source=source, **kwargs)


def create_terminal_cell(**kwargs) -> TerminalCell:
    return TerminalCell(**kwargs)


def create_command_cell(command: str = "", notes: str = "", **kwargs) -> CommandCell:
    return CommandCell(command=command, notes=notes, **kwargs)


def create_http_cell(request: Optional[HttpRequest] = None, **kwargs) -> HttpCell:
    return HttpCell(request=request or HttpRequest(), **kwargs)


def create_sql_cell(connection_id: Optional[str] = None, query: str = "", **kwargs) -> SqlCell:
    return SqlCell(connection_id=connection_id, query=query, **kwargs)


_FACTORIES = {
    "code": create_code_cell,
    "markdown": create_markdown_cell,
    "terminal": create_terminal_cell,
    "command": create_command_cell,
    "http": create_http_cell,
    "sql": create_sql_cell,
}


def create_cell(cell_type: str, **kwargs):
    """Build an empty cell of the given kind."""
    if cell_type == "shell":
        cell_type = "terminal"
    factory = _FACTORIES.get(cell_type)
    if factory is None:
        raise ValueError(f"Unknown cell type: {cell_type}")
    return factory(**kwargs)

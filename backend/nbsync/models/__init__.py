from .base import WireModel, IDENTIFIER_PATTERN, is_identifier, new_id, now_ms, utc_now_iso
from .cell import (
    CellType,
    TERMINAL_LIKE_TYPES,
    StreamOutput,
    DisplayOutput,
    ErrorOutput,
    NotebookOutput,
    OutputExecution,
    CodeCell,
    MarkdownCell,
    TerminalCell,
    CommandCell,
    HttpCell,
    SqlCell,
    UnknownCell,
    NotebookCell,
    upgrade_legacy_cell,
    create_cell,
    create_code_cell,
    create_markdown_cell,
    create_terminal_cell,
    create_command_cell,
    create_http_cell,
    create_sql_cell,
)
from .http import (
    HttpHeader,
    HttpQueryParam,
    HttpRequest,
    HttpRequestBody,
    HttpResponse,
    HttpResponseBody,
    HttpResponseHeader,
)
from .notebook import Notebook, NotebookEnv, NotebookSql, create_empty_notebook
from .sql import SqlColumn, SqlConnection, SqlConnectionConfig, SqlResult

__all__ = [
    "WireModel", "IDENTIFIER_PATTERN", "is_identifier", "new_id", "now_ms", "utc_now_iso",
    "CellType", "TERMINAL_LIKE_TYPES",
    "StreamOutput", "DisplayOutput", "ErrorOutput", "NotebookOutput", "OutputExecution",
    "CodeCell", "MarkdownCell", "TerminalCell", "CommandCell", "HttpCell", "SqlCell",
    "UnknownCell", "NotebookCell", "upgrade_legacy_cell",
    "create_cell", "create_code_cell", "create_markdown_cell", "create_terminal_cell",
    "create_command_cell", "create_http_cell", "create_sql_cell",
    "HttpHeader", "HttpQueryParam", "HttpRequest", "HttpRequestBody",
    "HttpResponse", "HttpResponseBody", "HttpResponseHeader",
    "Notebook", "NotebookEnv", "NotebookSql", "create_empty_notebook",
    "SqlColumn", "SqlConnection", "SqlConnectionConfig", "SqlResult",
]

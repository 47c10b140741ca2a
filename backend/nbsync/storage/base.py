from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import Field

from ..models import HttpRequest, HttpResponse, Notebook, NotebookCell, NotebookEnv, SqlResult, WireModel


class NotebookUpdate(WireModel):
    """The fields a save writes: `{name, env, cells}`."""
    name: str
    env: NotebookEnv
    cells: List[NotebookCell] = Field(default_factory=list)

    @classmethod
    def from_notebook(cls, notebook: Notebook) -> "NotebookUpdate":
        return cls(name=notebook.name, env=notebook.env, cells=list(notebook.cells))


class StorageBackend(ABC):
    """Abstract base class for notebook storage backends"""

    @abstractmethod
    async def save_notebook(self, notebook: Notebook) -> None:
        """Save a notebook to storage"""
        pass

    @abstractmethod
    async def load_notebook(self, notebook_id: str) -> Optional[Notebook]:
        """Load a notebook from storage"""
        pass

    @abstractmethod
    async def list_notebooks(self) -> List[str]:
        """List all notebook IDs"""
        pass

    @abstractmethod
    async def delete_notebook(self, notebook_id: str) -> None:
        """Delete a notebook from storage"""
        pass


class SessionService(ABC):
    """Creates and discards kernel sessions for a notebook"""

    @abstractmethod
    async def create_session(self, notebook_id: str) -> str:
        pass

    @abstractmethod
    async def delete_session(self, session_id: str) -> None:
        pass


class PersistenceService(ABC):
    """Durable save of a notebook document"""

    @abstractmethod
    async def save_notebook(self, notebook_id: str, update: NotebookUpdate) -> Notebook:
        """Persist `{name, env, cells}` and return the stored document"""
        pass


class ExecutionService(ABC):
    """One-shot request/response runs for HTTP and SQL cells"""

    @abstractmethod
    async def run_http(
        self,
        notebook_id: str,
        cell_id: str,
        request: HttpRequest,
        assign_variable: Optional[str] = None,
        assign_body: Optional[str] = None,
        assign_headers: Optional[str] = None,
    ) -> HttpResponse:
        pass

    @abstractmethod
    async def run_sql(
        self,
        notebook_id: str,
        cell_id: str,
        connection_id: str,
        query: str,
        assign_variable: Optional[str] = None,
    ) -> SqlResult:
        pass

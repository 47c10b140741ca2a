"""REST client for the notebook API: sessions, persistence and one-shot cell runs."""
from typing import Any, Dict, Optional

import httpx
import structlog
from pydantic import ValidationError

from ..core import settings
from ..core.errors import PersistenceError, ServiceError
from ..models import HttpRequest, HttpResponse, Notebook, SqlResult
from .base import ExecutionService, NotebookUpdate, PersistenceService, SessionService

logger = structlog.get_logger(__name__)


class NotebookApiClient(SessionService, PersistenceService, ExecutionService):
    """
    Talks to the notebook REST API over httpx.

    Responses come wrapped as `{"data": ...}`; errors as `{"error": "..."}`.
    Any non-2xx status or transport failure raises ServiceError.
    """

    def __init__(self, base_url: str = None, client: Optional[httpx.AsyncClient] = None, timeout: float = None):
        self.base_url = (base_url or settings.API_URL).rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "NotebookApiClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.warning("api_request_failed", method=method, path=path, error=str(e))
            raise ServiceError(f"Request to {path} failed: {e}") from e

        if response.status_code == 204:
            return None

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not response.is_success:
            message = None
            if isinstance(payload, dict) and isinstance(payload.get("error"), str):
                message = payload["error"]
            message = message or f"Request failed (status {response.status_code})"
            logger.warning("api_error", method=method, path=path, status=response.status_code, error=message)
            raise ServiceError(message, status_code=response.status_code)

        if isinstance(payload, dict) and "data" in payload:
            return payload["data"]
        return payload

    # Sessions

    async def create_session(self, notebook_id: str) -> str:
        data = await self._request("POST", f"/notebooks/{notebook_id}/sessions")
        if not isinstance(data, dict) or not isinstance(data.get("id"), str):
            raise ServiceError("Failed to start new session")
        logger.info("session_created", notebook_id=notebook_id, session_id=data["id"])
        return data["id"]

    async def delete_session(self, session_id: str) -> None:
        await self._request("DELETE", f"/sessions/{session_id}")
        logger.info("session_deleted", session_id=session_id)

    # Persistence

    async def load_notebook(self, notebook_id: str) -> Notebook:
        data = await self._request("GET", f"/notebooks/{notebook_id}")
        try:
            return Notebook.model_validate(data)
        except ValidationError as e:
            raise ServiceError(f"Invalid notebook payload: {e.error_count()} errors") from e

    async def save_notebook(self, notebook_id: str, update: NotebookUpdate) -> Notebook:
        try:
            data = await self._request("PUT", f"/notebooks/{notebook_id}", json=update.to_wire())
        except ServiceError as e:
            raise PersistenceError(str(e), status_code=e.status_code) from e
        try:
            return Notebook.model_validate(data)
        except ValidationError as e:
            raise PersistenceError(f"Invalid notebook payload: {e.error_count()} errors") from e

    # One-shot cell runs

    async def run_http(
        self,
        notebook_id: str,
        cell_id: str,
        request: HttpRequest,
        assign_variable: Optional[str] = None,
        assign_body: Optional[str] = None,
        assign_headers: Optional[str] = None,
    ) -> HttpResponse:
        body: Dict[str, Any] = {"cellId": cell_id, "request": request.to_wire()}
        if assign_variable:
            body["assignVariable"] = assign_variable
        if assign_body:
            body["assignBody"] = assign_body
        if assign_headers:
            body["assignHeaders"] = assign_headers

        data = await self._request("POST", f"/notebooks/{notebook_id}/http", json=body)
        response = data.get("response") if isinstance(data, dict) else None
        try:
            return HttpResponse.model_validate(response or {})
        except ValidationError as e:
            raise ServiceError(f"Invalid HTTP cell response: {e.error_count()} errors") from e

    async def run_sql(
        self,
        notebook_id: str,
        cell_id: str,
        connection_id: str,
        query: str,
        assign_variable: Optional[str] = None,
    ) -> SqlResult:
        body: Dict[str, Any] = {"cellId": cell_id, "connectionId": connection_id, "query": query}
        if assign_variable:
            body["assignVariable"] = assign_variable

        data = await self._request("POST", f"/notebooks/{notebook_id}/sql", json=body)
        result = data.get("result") if isinstance(data, dict) else None
        try:
            return SqlResult.model_validate(result or {})
        except ValidationError as e:
            raise ServiceError(f"Invalid SQL cell result: {e.error_count()} errors") from e

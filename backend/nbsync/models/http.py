"""Request/response payloads carried by HTTP cells."""
from typing import Any, List, Literal, Optional

from pydantic import Field

from .base import WireModel, new_id

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


class HttpHeader(WireModel):
    id: str = Field(default_factory=new_id)
    name: str = ""
    value: str = ""
    enabled: bool = True


class HttpQueryParam(WireModel):
    id: str = Field(default_factory=new_id)
    name: str = ""
    value: str = ""
    enabled: bool = True


class HttpRequestBody(WireModel):
    mode: Literal["none", "json", "text"] = "none"
    text: str = ""
    content_type: str = "application/json"


class HttpRequest(WireModel):
    method: HttpMethod = "GET"
    url: str = ""
    headers: List[HttpHeader] = Field(default_factory=list)
    query: List[HttpQueryParam] = Field(default_factory=list)
    body: HttpRequestBody = Field(default_factory=HttpRequestBody)


class HttpResponseHeader(WireModel):
    name: str
    value: str


class HttpResponseBody(WireModel):
    type: Literal["json", "text", "binary"] = "text"
    text: Optional[str] = None
    json_: Optional[Any] = Field(default=None, alias="json")
    size: Optional[int] = None
    content_type: Optional[str] = None
    encoding: Optional[Literal["utf8", "base64"]] = None


class HttpResponse(WireModel):
    status: Optional[int] = None
    status_text: Optional[str] = None
    ok: Optional[bool] = None
    url: Optional[str] = None
    duration_ms: Optional[float] = None
    timestamp: Optional[str] = None
    headers: List[HttpResponseHeader] = Field(default_factory=list)
    body: Optional[HttpResponseBody] = None
    error: Optional[str] = None
    curl: Optional[str] = None
    assigned_variable: Optional[str] = None
    assigned_body: Optional[str] = None
    assigned_headers: Optional[str] = None

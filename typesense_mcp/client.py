"""
Thin Typesense HTTP client (single node, no retries) and the pydantic models
for the payloads the adapter reads and sends.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote

import requests
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from .config import ConnectionConfig, HttpConfig
from .errors import ServiceError

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-TYPESENSE-API-KEY"


class CollectionDescriptor(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    num_documents: Optional[int] = None
    fields: List[Dict[str, Any]] = []


class SearchParams(BaseModel):
    q: str
    query_by: Optional[str] = None
    filter_by: Optional[str] = None
    sort_by: Optional[str] = None
    per_page: int = 10
    prefix: Optional[bool] = None
    exclude_fields: Optional[List[str]] = None

    def to_query(self) -> Dict[str, Union[str, int]]:
        """Query-string form; empty values are left out."""
        query: Dict[str, Union[str, int]] = {}
        for key, value in self.model_dump().items():
            if value is None or value == "" or value == []:
                continue
            if isinstance(value, bool):
                query[key] = "true" if value else "false"
            elif isinstance(value, list):
                query[key] = ",".join(value)
            else:
                query[key] = value
        return query


class SearchResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    hits: List[Dict[str, Any]] = []
    found: Optional[int] = None

    def documents(self) -> List[Dict[str, Any]]:
        return [hit["document"] for hit in self.hits if "document" in hit]


def _segment(value: str) -> str:
    return quote(value, safe="")


def _parse(model: Any, data: Any) -> Any:
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ServiceError(f"Unexpected response shape: {exc}") from exc


class TypesenseClient:
    def __init__(
        self,
        config: ConnectionConfig,
        http: Optional[HttpConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        http = http or HttpConfig()
        self.config = config
        # Connect timeout only, no read timeout.
        self.timeout = (http.connection_timeout_seconds, None)
        self.headers = {
            API_KEY_HEADER: config.api_key,
            "User-Agent": http.user_agent,
            "Accept": "application/json",
        }
        self._shared_session = session
        if session is not None:
            session.headers.update(self.headers)
        self._local = threading.local()

    @property
    def session(self) -> requests.Session:
        """Session for the calling thread.

        Handlers run on worker threads and ``requests.Session`` is not
        thread-safe, so each thread gets its own unless one was injected.
        """
        if self._shared_session is not None:
            return self._shared_session
        if not hasattr(self._local, "session"):
            session = requests.Session()
            session.headers.update(self.headers)
            self._local.session = session
        return self._local.session

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = self.config.base_url + path
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ServiceError(f"Request to {url} failed: {exc}") from exc

        if resp.status_code >= 400:
            raise ServiceError(
                f"Request failed with HTTP code {resp.status_code}"
                f" | Server said: {_server_message(resp)}",
                status_code=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise ServiceError(
                f"Invalid JSON in response from {url}",
                status_code=resp.status_code,
            ) from exc

    def list_collections(self) -> List[CollectionDescriptor]:
        data = self._get("/collections")
        if not isinstance(data, list):
            raise ServiceError("Unexpected response shape: expected a list")
        return [_parse(CollectionDescriptor, c) for c in data]

    def retrieve_collection(self, name: str) -> CollectionDescriptor:
        data = self._get(f"/collections/{_segment(name)}")
        return _parse(CollectionDescriptor, data)

    def search_documents(self, name: str, params: SearchParams) -> SearchResult:
        data = self._get(
            f"/collections/{_segment(name)}/documents/search",
            params=params.to_query(),
        )
        return _parse(SearchResult, data)

    def retrieve_document(self, name: str, document_id: str) -> Dict[str, Any]:
        return self._get(
            f"/collections/{_segment(name)}/documents/{_segment(document_id)}"
        )

    def retrieve_health(self) -> Dict[str, Any]:
        return self._get("/health")


def _server_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or resp.reason or ""
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return resp.text


def make_client(
    config: ConnectionConfig, http: Optional[HttpConfig] = None
) -> TypesenseClient:
    logger.info("Connecting to Typesense at %s", config.base_url)
    return TypesenseClient(config, http)

"""Remote Data Service — the only path to persisted records.

Contract:
  read(partition)                      -> ServiceResponse(records=[...])
  write(partition, operation, payload) -> ServiceResponse(record={...})

A `success=False` response is a business answer from the backend and is
returned normally. Anything that prevents getting an answer at all
(unreachable host, timeout, non-2xx status, malformed body) raises
TransportError.

Backends:
  HttpDataService      spreadsheet web-app endpoint over httpx
  InMemoryDataService  dict-backed partitions for local development and tests
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

logger = logging.getLogger(__name__)

WRITE_OPERATIONS = ("create", "update", "delete")


class TransportError(Exception):
    """The data service could not be reached or answered unintelligibly."""


@dataclass
class ServiceResponse:
    success: bool
    records: list[dict] | None = None
    record: dict | None = None
    error: str | None = None


class RemoteDataService(Protocol):
    async def read(self, partition: str) -> ServiceResponse: ...

    async def write(self, partition: str, operation: str, payload: dict) -> ServiceResponse: ...


def _check_operation(operation: str) -> None:
    if operation not in WRITE_OPERATIONS:
        raise ValueError(f"Unsupported write operation: {operation!r}")


# ── HTTP backend ────────────────────────────────────────────

class HttpDataService:
    """Client for the spreadsheet web-app endpoint.

    Reads are `GET ?action=read&sheet=<partition>`; writes are a POST of
    `{"action", "sheet", "data"}`. The body is sent as text/plain because
    the endpoint does not answer CORS preflights for application/json.
    """

    def __init__(self, base_url: str, timeout: float = 30.0, client: httpx.AsyncClient | None = None):
        self.base_url = base_url
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, self.base_url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(f"Data service unreachable: {e}") from e

        if response.status_code >= 400:
            raise TransportError(f"HTTP error! status: {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise TransportError("Malformed response from data service") from e

    async def read(self, partition: str) -> ServiceResponse:
        body = await self._request("GET", params={"action": "read", "sheet": partition})

        if isinstance(body, dict):
            if body.get("success") is False:
                return ServiceResponse(success=False, error=body.get("error") or "Unknown error")
            body = body.get("data", body)

        if not isinstance(body, list):
            raise TransportError(f"Expected a list of records for {partition!r}")
        return ServiceResponse(success=True, records=body)

    async def write(self, partition: str, operation: str, payload: dict) -> ServiceResponse:
        _check_operation(operation)
        body = await self._request(
            "POST",
            content=json.dumps({"action": operation, "sheet": partition, "data": payload}),
            headers={"Content-Type": "text/plain;charset=utf-8"},
        )

        if not isinstance(body, dict):
            raise TransportError(f"Expected an object from {operation} on {partition!r}")
        if body.get("success") is False:
            return ServiceResponse(success=False, error=body.get("error") or "Unknown error")

        data = body.get("data", body)
        return ServiceResponse(success=True, record=data if isinstance(data, dict) else None)


# ── In-memory backend ───────────────────────────────────────

@dataclass
class InMemoryDataService:
    """Partition dict with the same contract as the HTTP backend.

    `unreachable` partitions raise TransportError on any call;
    `rejections` maps partition -> error message returned as success=False
    for writes.
    """

    partitions: dict[str, list[dict]] = field(default_factory=dict)
    unreachable: set[str] = field(default_factory=set)
    rejections: dict[str, str] = field(default_factory=dict)
    calls: list[tuple[str, str]] = field(default_factory=list)

    def _guard(self, partition: str) -> None:
        if partition in self.unreachable:
            raise TransportError(f"Data service unreachable for {partition!r}")

    async def read(self, partition: str) -> ServiceResponse:
        self.calls.append(("read", partition))
        self._guard(partition)
        rows = self.partitions.get(partition, [])
        return ServiceResponse(success=True, records=[dict(r) for r in rows])

    async def write(self, partition: str, operation: str, payload: dict) -> ServiceResponse:
        _check_operation(operation)
        self.calls.append((operation, partition))
        self._guard(partition)
        if partition in self.rejections:
            return ServiceResponse(success=False, error=self.rejections[partition])

        rows = self.partitions.setdefault(partition, [])

        if operation == "create":
            row = {**payload, "id": payload.get("id") or uuid.uuid4().hex}
            rows.append(row)
            return ServiceResponse(success=True, record=dict(row))

        index = next(
            (i for i, r in enumerate(rows) if str(r.get("id")) == str(payload.get("id"))),
            None,
        )
        if index is None:
            return ServiceResponse(success=False, error=f"Data with id {payload.get('id')} not found")

        if operation == "update":
            rows[index] = {**rows[index], **payload}
            return ServiceResponse(success=True, record=dict(rows[index]))

        del rows[index]
        return ServiceResponse(success=True)

    async def aclose(self) -> None:
        return None

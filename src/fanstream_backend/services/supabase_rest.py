import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiohttp
from aiohttp import ClientSession, ClientTimeout, TCPConnector
from aiohttp.client_exceptions import ClientConnectionError, ClientError, ServerTimeoutError

from fanstream_backend.core.config import settings
from fanstream_backend.core.result import BackendError, ErrorKind

log = logging.getLogger(__name__)

# (column, operator, value) -> "column=operator.value"
Filter = Tuple[str, str, Any]

UNIQUE_VIOLATION = "23505"
NO_ROWS = "PGRST116"
SINGLE_OBJECT = "application/vnd.pgrst.object+json"


def eq(column: str, value: Any) -> Filter:
    return (column, "eq", value)


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def build_params(
        columns: str = "*",
        filters: Sequence[Filter] = (),
        order: Optional[str] = None,
        limit: Optional[int] = None,
) -> List[Tuple[str, str]]:
    """Query string for PostgREST; repeated columns are kept as separate pairs."""
    params: List[Tuple[str, str]] = [("select", columns)]
    for column, op, value in filters:
        params.append((column, f"{op}.{_format_value(value)}"))
    if order:
        params.append(("order", order))
    if limit is not None:
        params.append(("limit", str(limit)))
    return params


def classify(status: int, code: Optional[str]) -> ErrorKind:
    if code == UNIQUE_VIOLATION or status == 409:
        return ErrorKind.CONFLICT
    if code == NO_ROWS or status in (404, 406):
        return ErrorKind.NOT_FOUND
    if status in (401, 403):
        return ErrorKind.PERMISSION_DENIED
    if status >= 500:
        return ErrorKind.NETWORK_UNAVAILABLE
    return ErrorKind.BACKEND_REJECTED


class RetryableSession:
    """HTTP session with connection pooling; retries idempotent requests on transport errors."""

    def __init__(self, timeout: float = 10, retries: int = 3):
        self.timeout = timeout
        self.retries = max(1, retries)
        self.connector: Optional[TCPConnector] = None
        self.session: Optional[ClientSession] = None

    async def _ensure_session(self) -> ClientSession:
        if not self.session or self.session.closed:
            self.connector = TCPConnector(
                limit=100,
                limit_per_host=30,
                ttl_dns_cache=300,
                enable_cleanup_closed=True,
                keepalive_timeout=30,
            )
            self.session = ClientSession(
                connector=self.connector,
                timeout=ClientTimeout(total=self.timeout, connect=5),
                headers={"Accept": "application/json"},
            )
        return self.session

    async def request(self, method: str, url: str, retry: bool = True, **kwargs) -> aiohttp.ClientResponse:
        attempts = self.retries if retry else 1
        last_error: Optional[BaseException] = None

        for attempt in range(attempts):
            try:
                session = await self._ensure_session()
                async with session.request(method, url, **kwargs) as resp:
                    # body is cached on the response so it stays readable after release
                    await resp.read()
                    return resp

            except (ServerTimeoutError, asyncio.TimeoutError, ClientConnectionError) as e:
                last_error = e
                if attempt < attempts - 1:
                    await asyncio.sleep(0.25 * (2 ** attempt))
                    log.debug(f"Retry {attempt + 1}/{attempts} for {method} {url}: {e!r}")

            except ClientError as e:
                last_error = e
                break

        raise BackendError(
            ErrorKind.NETWORK_UNAVAILABLE,
            f"{method} {url} failed: {last_error!r}",
        )

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
        if self.connector:
            await self.connector.close()
        self.session = None
        self.connector = None


class SupabaseRestClient:
    """PostgREST client for the hosted Supabase project."""

    def __init__(
            self,
            base_url: Optional[str] = None,
            api_key: Optional[str] = None,
            timeout: Optional[float] = None,
            read_attempts: Optional[int] = None,
    ) -> None:
        self.base_url = (base_url or settings.supabase_url).rstrip("/")
        self.rest_url = f"{self.base_url}/rest/v1"
        self._api_key = api_key or settings.supabase_anon_key
        self.http = RetryableSession(
            timeout=timeout or settings.supabase_timeout,
            retries=read_attempts or settings.supabase_read_attempts,
        )
        log.info("SupabaseRestClient initialized: url=%s", _mask(self.base_url))

    def _headers(self, *, single: bool = False, returning: bool = False) -> Dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
        }
        if single:
            headers["Accept"] = SINGLE_OBJECT
        if returning:
            headers["Prefer"] = "return=representation"
        return headers

    async def _call(
            self,
            method: str,
            path: str,
            *,
            params: Optional[List[Tuple[str, str]]] = None,
            payload: Any = None,
            single: bool = False,
            returning: bool = False,
    ) -> Any:
        url = f"{self.rest_url}/{path}"
        kwargs: Dict[str, Any] = {"headers": self._headers(single=single, returning=returning)}
        if params:
            kwargs["params"] = params
        if payload is not None:
            kwargs["json"] = payload

        resp = await self.http.request(method, url, retry=(method == "GET"), **kwargs)
        body = await resp.read()
        data = _decode(body)

        if resp.status >= 400:
            code = data.get("code") if isinstance(data, dict) else None
            message = data.get("message") if isinstance(data, dict) else None
            kind = classify(resp.status, code)
            raise BackendError(
                kind,
                message or f"{method} {path} returned {resp.status}",
                status=resp.status,
                code=code,
            )
        return data

    async def select(
            self,
            table: str,
            columns: str = "*",
            filters: Sequence[Filter] = (),
            order: Optional[str] = None,
            limit: Optional[int] = None,
            single: bool = False,
    ) -> Any:
        params = build_params(columns, filters, order, limit)
        return await self._call("GET", table, params=params, single=single)

    async def insert(self, table: str, row: Dict[str, Any], columns: Optional[str] = None,
                     single: bool = False) -> Any:
        params = [("select", columns)] if columns else None
        return await self._call(
            "POST", table, params=params, payload=row,
            single=single, returning=columns is not None,
        )

    async def update(self, table: str, values: Dict[str, Any], filters: Sequence[Filter]) -> Any:
        if not filters:
            raise ValueError("update without filters would touch every row")
        params = [(c, f"{op}.{_format_value(v)}") for c, op, v in filters]
        return await self._call("PATCH", table, params=params, payload=values)

    async def delete(self, table: str, filters: Sequence[Filter]) -> Any:
        if not filters:
            raise ValueError("delete without filters would touch every row")
        params = [(c, f"{op}.{_format_value(v)}") for c, op, v in filters]
        return await self._call("DELETE", table, params=params)

    async def rpc(self, function: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._call("POST", f"rpc/{function}", payload=params or {})

    async def close(self) -> None:
        await self.http.close()
        log.info("SupabaseRestClient closed")


def _decode(body: bytes) -> Any:
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return {"message": body.decode("utf-8", "replace")[:200]}


def _mask(url: str) -> str:
    if len(url) <= 16:
        return url
    return f"{url[:12]}...{url[-4:]}"

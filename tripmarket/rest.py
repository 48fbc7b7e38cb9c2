"""
Supabase clients over plain HTTP: PostgREST tables and RPC, GoTrue auth, and
the storage API. All calls use the service key and raise ``UpstreamError`` on
any non-2xx response.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional, Sequence

import requests

from tripmarket.errors import AuthenticationError, ConflictError, UpstreamError
from tripmarket.filters import Filters, to_query_params

logger = logging.getLogger(__name__)

CONTENT_RANGE_TOTAL = re.compile(r"/(\d+)$")


class _SupabaseHttp:
    def __init__(
        self,
        base_url: str,
        service_key: str,
        *,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        if not base_url or not service_key:
            raise ValueError("Supabase URL and service key are required")
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self, token: Optional[str] = None, **extra: str) -> dict:
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {token or self.service_key}",
            "Content-Type": "application/json",
        }
        headers.update(extra)
        return headers

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        kwargs.setdefault("timeout", self.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            raise UpstreamError(f"{method} {path} failed: {exc}") from exc
        if not 200 <= response.status_code < 300:
            detail = response.text[:300]
            logger.warning("%s %s -> %s: %s", method, path, response.status_code, detail)
            if response.status_code == 409:
                raise ConflictError(f"{method} {path} conflicts with an existing row: {detail}")
            raise UpstreamError(
                f"{method} {path} returned {response.status_code}: {detail}",
                status=response.status_code,
            )
        return response

    @staticmethod
    def _json(response: requests.Response) -> Any:
        if not response.content:
            return None
        return response.json()


class SupabaseRestClient(_SupabaseHttp):
    """DbClient over PostgREST (``/rest/v1``)."""

    def select(
        self,
        table: str,
        *,
        filters: Optional[Filters] = None,
        columns: Optional[Sequence[str]] = None,
        order: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        for_update: bool = False,
    ) -> list[dict]:
        params = [("select", ",".join(columns) if columns else "*")]
        params.extend(to_query_params(filters))
        if order:
            params.append(("order", order))
        if limit is not None:
            params.append(("limit", str(limit)))
        if offset:
            params.append(("offset", str(offset)))
        response = self._request(
            "GET", f"/rest/v1/{table}", params=params, headers=self._headers()
        )
        return self._json(response) or []

    def insert(self, table: str, values: dict) -> dict:
        response = self._request(
            "POST",
            f"/rest/v1/{table}",
            json=values,
            headers=self._headers(Prefer="return=representation"),
        )
        rows = self._json(response) or []
        if isinstance(rows, list):
            if not rows:
                raise UpstreamError(f"Insert into {table} returned no row")
            return rows[0]
        return rows

    def update(self, table: str, filters: Filters, values: dict) -> list[dict]:
        response = self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=to_query_params(filters),
            json=values,
            headers=self._headers(Prefer="return=representation"),
        )
        return self._json(response) or []

    def remove(self, table: str, filters: Filters) -> list[dict]:
        response = self._request(
            "DELETE",
            f"/rest/v1/{table}",
            params=to_query_params(filters),
            headers=self._headers(Prefer="return=representation"),
        )
        return self._json(response) or []

    def count(self, table: str, filters: Optional[Filters] = None) -> int:
        params = [("select", "*")] + to_query_params(filters)
        response = self._request(
            "HEAD",
            f"/rest/v1/{table}",
            params=params,
            headers=self._headers(Prefer="count=exact"),
        )
        match = CONTENT_RANGE_TOTAL.search(response.headers.get("Content-Range", ""))
        if not match:
            raise UpstreamError(f"Count for {table} returned no Content-Range total")
        return int(match.group(1))

    def rpc(self, name: str, params: Optional[dict] = None) -> Any:
        response = self._request(
            "POST",
            f"/rest/v1/rpc/{name}",
            json=params or {},
            headers=self._headers(),
        )
        return self._json(response)


class SupabaseAuthClient(_SupabaseHttp):
    """Resolves access tokens through GoTrue (``/auth/v1``)."""

    def get_user(self, token: str) -> dict:
        try:
            response = self._request(
                "GET", "/auth/v1/user", headers=self._headers(token=token)
            )
        except UpstreamError as exc:
            if exc.status in (401, 403):
                raise AuthenticationError("Invalid or expired token") from exc
            raise
        return self._json(response)

    def create_user(self, email: str, password: str, *, confirm: bool = True, metadata: Optional[dict] = None) -> dict:
        response = self._request(
            "POST",
            "/auth/v1/admin/users",
            json={
                "email": email,
                "password": password,
                "email_confirm": confirm,
                "user_metadata": metadata or {},
            },
            headers=self._headers(),
        )
        return self._json(response)


class SupabaseStorageClient(_SupabaseHttp):
    """StorageClient over the Supabase storage API."""

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{path}"

    def upload_bytes(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        headers = self._headers(**{"Content-Type": content_type, "x-upsert": "false"})
        self._request(
            "POST", f"/storage/v1/object/{bucket}/{path}", data=data, headers=headers
        )
        return self.public_url(bucket, path)

    def presign_get(self, bucket: str, path: str, expires_in: int = 3600) -> str:
        response = self._request(
            "POST",
            f"/storage/v1/object/sign/{bucket}/{path}",
            json={"expiresIn": expires_in},
            headers=self._headers(),
        )
        signed = (self._json(response) or {}).get("signedURL")
        if not signed:
            raise UpstreamError(f"No signed URL returned for {bucket}/{path}")
        return f"{self.base_url}/storage/v1{signed}"

    def delete(self, bucket: str, path: str) -> None:
        self._request(
            "DELETE",
            f"/storage/v1/object/{bucket}",
            json={"prefixes": [path]},
            headers=self._headers(),
        )

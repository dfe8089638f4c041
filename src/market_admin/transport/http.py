"""
REST HTTP client for the hosted marketplace backend (auth + row storage).
"""

from typing import Any, Optional

import httpx

from market_admin.errors import BackendError

DEFAULT_BASE_URL = "http://localhost:54321"
USER_AGENT = "market-admin-core/0.1.0"


class HttpClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        api_key: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    def _auth_headers(self, authenticated: bool) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
        bearer = self._token if authenticated and self._token else self._api_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return headers

    @staticmethod
    def _check(resp: httpx.Response) -> Any:
        if resp.status_code >= 400:
            raise BackendError(f"HTTP {resp.status_code}: {resp.text[:200]}", status_code=resp.status_code)
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    async def get(
        self,
        path: str,
        params: Optional[dict[str, str]] = None,
        authenticated: bool = True,
    ) -> Any:
        resp = await self._client.get(path, params=params, headers=self._auth_headers(authenticated))
        return self._check(resp)

    async def post(
        self,
        path: str,
        body: Optional[Any] = None,
        params: Optional[dict[str, str]] = None,
        headers: Optional[dict[str, str]] = None,
        authenticated: bool = True,
    ) -> Any:
        merged = {**self._auth_headers(authenticated), **(headers or {})}
        resp = await self._client.post(path, json=body, params=params, headers=merged)
        return self._check(resp)

    async def close(self) -> None:
        await self._client.aclose()

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import quote

import httpx

from .errors import VConApiError
from .jws import stable_json
from .models import format_timestamp
from .vcon import VCon

logger = logging.getLogger(__name__)

CLIENT_VERSION = "0.1.0"
API_TOKEN_HEADER = "x-conserver-api-token"

QueryParams = List[Tuple[str, Any]]


@dataclass
class VConApiClientOptions:
    base_url: str
    api_token: Optional[str] = None
    timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls) -> "VConApiClientOptions":
        base_url = os.getenv("VCON_API_BASE_URL", "")
        if not base_url:
            raise ValueError("VCON_API_BASE_URL is required")
        return cls(
            base_url=base_url,
            api_token=os.getenv("VCON_API_TOKEN") or None,
            timeout_seconds=float(os.getenv("VCON_API_TIMEOUT_SECONDS", "10")),
        )


class VConApiClient:
    """Synchronous client for a conserver-style vCon service.

    Each call makes exactly one HTTP attempt; non-2xx responses raise
    :class:`VConApiError`.
    """

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout_seconds: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
    ):
        if not base_url:
            raise ValueError("base_url is required")
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout_seconds = timeout_seconds
        self.headers = headers or {}
        self.http = httpx.Client(timeout=self.timeout_seconds)

    @classmethod
    def from_options(cls, options: VConApiClientOptions) -> "VConApiClient":
        return cls(options.base_url, api_token=options.api_token, timeout_seconds=options.timeout_seconds)

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> "VConApiClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def get_vcon_uuids(
        self,
        page: Optional[int] = 1,
        size: Optional[int] = 50,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[str]:
        params: QueryParams = []
        if page is not None:
            params.append(("page", page))
        if size is not None:
            params.append(("size", size))
        if since is not None:
            params.append(("since", format_timestamp(since)))
        if until is not None:
            params.append(("until", format_timestamp(until)))
        return list(self._request("GET", "/vcon", params=params) or [])

    def get_vcon(self, vcon_uuid: str) -> Optional[VCon]:
        try:
            data = self._request("GET", f"/vcon/{quote(str(vcon_uuid), safe='')}")
        except VConApiError as exc:
            if exc.status_code == 404:
                return None
            raise
        return VCon.from_dict(data) if data else None

    def get_multiple_vcons(self, vcon_uuids: Iterable[str]) -> List[VCon]:
        uuids = [str(u) for u in vcon_uuids]
        if not uuids:
            return []
        data = self._request("GET", "/vcons", params=[("vcon_uuids", u) for u in uuids])
        return [VCon.from_dict(item) for item in (data or []) if item]

    def create_vcon(self, vcon: VCon, ingress_lists: Optional[Sequence[str]] = None) -> VCon:
        params: QueryParams = [("ingress_lists", name) for name in (ingress_lists or [])]
        data = self._request("POST", "/vcon", params=params, body=vcon.to_dict())
        return VCon.from_dict(data)

    def delete_vcon(self, vcon_uuid: str) -> None:
        self._request("DELETE", f"/vcon/{quote(str(vcon_uuid), safe='')}")

    def search_vcons(self, tel: Optional[str] = None, mailto: Optional[str] = None, name: Optional[str] = None) -> List[str]:
        params: QueryParams = []
        if tel:
            params.append(("tel", tel))
        if mailto:
            params.append(("mailto", mailto))
        if name:
            params.append(("name", name))
        return [str(u) for u in (self._request("GET", "/vcons/search", params=params) or [])]

    def add_to_ingress_list(self, ingress_list: str, vcon_uuids: Iterable[str]) -> None:
        if not ingress_list:
            raise ValueError("ingress_list is required")
        self._request("POST", "/vcon/ingress", params=[("ingress_list", ingress_list)], body=[str(u) for u in vcon_uuids])

    def get_from_egress_list(self, egress_list: str, limit: Optional[int] = 1) -> List[str]:
        if not egress_list:
            raise ValueError("egress_list is required")
        params: QueryParams = [("egress_list", egress_list)]
        if limit is not None:
            params.append(("limit", limit))
        return list(self._request("GET", "/vcon/egress", params=params) or [])

    def count_egress_list(self, egress_list: str) -> int:
        if not egress_list:
            raise ValueError("egress_list is required")
        data = self._request("GET", "/vcon/count", params=[("egress_list", egress_list)])
        if isinstance(data, dict):
            data = next(iter(data.values()), 0)
        return int(data or 0)

    def get_config(self) -> Dict[str, Any]:
        return self._request("GET", "/config") or {}

    def update_config(self, config: Dict[str, Any]) -> None:
        self._request("POST", "/config", body=config)

    def get_dead_letter_queue(self, ingress_list: str) -> Dict[str, Any]:
        return self._request("GET", "/dlq", params=[("ingress_list", ingress_list)]) or {}

    def reprocess_dead_letter_queue(self, ingress_list: str) -> Dict[str, Any]:
        return self._request("POST", "/dlq/reprocess", params=[("ingress_list", ingress_list)]) or {}

    def rebuild_search_index(self) -> Dict[str, Any]:
        return self._request("GET", "/index_vcons") or {}

    def _request(self, method: str, path: str, params: Optional[QueryParams] = None, body: Optional[Any] = None) -> Any:
        body_text = stable_json(body) if body is not None else ""
        headers: Dict[str, str] = {
            "Accept": "application/json",
            "User-Agent": f"vcon-python/{CLIENT_VERSION}",
            **self.headers,
        }
        if body_text:
            headers["Content-Type"] = "application/json"
        if self.api_token:
            headers[API_TOKEN_HEADER] = self.api_token
        logger.debug("%s %s params=%s", method, path, params or [])
        try:
            resp = self.http.request(
                method,
                self.base_url + path,
                params=params or None,
                content=body_text.encode("utf-8") if body_text else None,
                headers=headers,
            )
        except httpx.HTTPError:
            logger.error("%s %s failed", method, path, exc_info=True)
            raise
        if 200 <= resp.status_code < 300:
            return resp.json() if resp.content else None
        err = self._to_error(resp)
        if resp.status_code != 404:
            logger.error("%s %s returned %d: %s", method, path, resp.status_code, err)
        raise err

    def _to_error(self, resp: httpx.Response) -> VConApiError:
        try:
            parsed = resp.json()
        except ValueError:
            return VConApiError(resp.status_code, resp.text or f"HTTP {resp.status_code}")
        if not isinstance(parsed, dict):
            return VConApiError(resp.status_code, f"HTTP {resp.status_code}", details=parsed)
        detail = parsed.get("detail")
        message = parsed.get("message") or (detail if isinstance(detail, str) else None) or f"HTTP {resp.status_code}"
        return VConApiError(resp.status_code, message, details=detail if not isinstance(detail, str) else None)

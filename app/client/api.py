from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


class ListingApiConfigError(RuntimeError):
    pass


@dataclass
class ListingApiRequestError(RuntimeError):
    message: str
    status_code: int | None = None
    details: Any = None

    def __str__(self) -> str:
        status = f" status={self.status_code}" if self.status_code is not None else ""
        return f"{self.message}{status}".strip()

    @property
    def is_transient(self) -> bool:
        return self.status_code is None or self.status_code >= 500 or self.status_code == 429


class ListingApiClient:
    """
    Synchronous client for the listing canvas API.

    Pass `http_client` to reuse a configured httpx.Client (or a test client); otherwise
    each call opens a short-lived client against `base_url`.
    """

    def __init__(
        self,
        *,
        bearer_token: str,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        resolved_token = (bearer_token or "").strip()
        if not resolved_token:
            raise ListingApiConfigError("A bearer token is required")
        self.bearer_token = resolved_token
        self.base_url = (base_url or settings.LISTING_API_BASE_URL or "").rstrip("/")
        self.timeout_seconds = float(timeout_seconds or settings.LISTING_API_TIMEOUT_SECONDS or 30.0)
        self._http_client = http_client
        if http_client is None and not self.base_url:
            raise ListingApiConfigError("LISTING_API_BASE_URL is required")

    # projects

    def create_project(self, *, title: str, description: str | None = None) -> dict[str, Any]:
        return self._request_json("POST", "/projects", json_payload={"title": title, "description": description})

    def list_projects(self) -> list[dict[str, Any]]:
        return self._request_json("GET", "/projects")

    # canvas

    def get_canvas(self, *, project_id: str) -> dict[str, Any]:
        return self._request_json("GET", f"/projects/{project_id}/canvas")

    def save_canvas(self, *, project_id: str, state: dict[str, Any]) -> dict[str, Any]:
        return self._request_json("PUT", f"/projects/{project_id}/canvas", json_payload=state)

    def save_viewport(self, *, project_id: str, viewport: dict[str, float]) -> dict[str, Any]:
        return self._request_json(
            "PATCH", f"/projects/{project_id}/canvas/viewport", json_payload={"viewport": viewport}
        )

    # products

    def create_product(
        self, *, project_id: str, canvas_position: dict[str, float], **fields: Any
    ) -> dict[str, Any]:
        payload = {"projectId": project_id, "canvasPosition": canvas_position, **fields}
        return self._request_json("POST", "/products", json_payload=payload)

    def update_product_info(self, *, product_id: str, **fields: Any) -> dict[str, Any]:
        return self._request_json("PATCH", f"/products/{product_id}/info", json_payload=fields)

    def upload_product_image(
        self, *, product_id: str, file_name: str, file_bytes: bytes, content_type: str
    ) -> dict[str, Any]:
        files = {"file": (file_name, file_bytes, content_type)}
        return self._request_json("POST", f"/products/{product_id}/images", files=files)

    def delete_product(self, *, product_id: str) -> dict[str, Any]:
        return self._request_json("DELETE", f"/products/{product_id}")

    # agents

    def create_agent(
        self, *, product_id: str, agent_type: str, canvas_position: dict[str, float]
    ) -> dict[str, Any]:
        payload = {"productId": product_id, "type": agent_type, "canvasPosition": canvas_position}
        return self._request_json("POST", "/agents", json_payload=payload)

    def get_agent(self, *, agent_id: str) -> dict[str, Any]:
        return self._request_json("GET", f"/agents/{agent_id}")

    def delete_agent(self, *, agent_id: str) -> dict[str, Any]:
        return self._request_json("DELETE", f"/agents/{agent_id}")

    def generate(self, *, agent_id: str, additional_context: str | None = None) -> dict[str, Any]:
        return self._request_json(
            "POST", f"/agents/{agent_id}/generate", json_payload={"additionalContext": additional_context}
        )

    def refine(self, *, agent_id: str, message: str) -> dict[str, Any]:
        return self._request_json("POST", f"/agents/{agent_id}/refine", json_payload={"message": message})

    # brand kit

    def upsert_canvas_brand_kit(self, *, project_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        return self._request_json("PUT", f"/projects/{project_id}/brand-kit", json_payload=payload)

    def delete_canvas_brand_kit(self, *, project_id: str) -> dict[str, Any]:
        return self._request_json("DELETE", f"/projects/{project_id}/brand-kit")

    # shares

    def create_share(self, *, project_id: str) -> dict[str, Any]:
        return self._request_json("POST", f"/projects/{project_id}/shares")

    def _headers(self, *, json_body: bool) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.bearer_token}", "Accept": "application/json"}
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _send(self, client: httpx.Client, method: str, path: str, **kwargs: Any) -> httpx.Response:
        return client.request(method=method, url=path, **kwargs)

    def _request_json(
        self,
        method: str,
        path: str,
        *,
        json_payload: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> Any:
        kwargs: dict[str, Any] = {"headers": self._headers(json_body=json_payload is not None)}
        if json_payload is not None:
            kwargs["json"] = json_payload
        if files is not None:
            kwargs["files"] = files

        try:
            if self._http_client is not None:
                resp = self._send(self._http_client, method, path, **kwargs)
            else:
                with httpx.Client(base_url=self.base_url, timeout=self.timeout_seconds) as client:
                    resp = self._send(client, method, path, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("Listing API transport error", extra={"method": method, "path": path})
            raise ListingApiRequestError(f"Request to {method} {path} failed: {exc}") from exc

        if resp.status_code >= 400:
            self._raise_request_error(resp)

        try:
            return resp.json()
        except ValueError as exc:
            raise ListingApiRequestError(
                f"Listing API returned non-JSON payload for {method} {path}",
                status_code=resp.status_code,
            ) from exc

    def _raise_request_error(self, resp: httpx.Response) -> None:
        message = f"Listing API request failed ({resp.status_code})"
        details: Any = None
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            detail = payload.get("detail")
            if isinstance(detail, str) and detail:
                message = detail
            details = payload
        raise ListingApiRequestError(message=message, status_code=resp.status_code, details=details)

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

import httpx
from azure.core.exceptions import ClientAuthenticationError
from azure.identity import DefaultAzureCredential

from azhealth.errors import (
    ArmAuthError,
    ArmNotFoundError,
    ArmRequestError,
    ArmServerError,
    ArmThrottledError,
    AuthenticationFailedError,
)


ARM_ENDPOINT = "https://management.azure.com"
ARM_SCOPE = f"{ARM_ENDPOINT}/.default"
SUBSCRIPTIONS_API_VERSION = "2020-01-01"

logger = logging.getLogger("azhealth.arm_client")


@dataclass(frozen=True)
class ArmConfig:
    subscription_id: Optional[str] = None
    api_version: str = "2022-09-01"
    timeout_seconds: float = 30.0
    allow_interactive: bool = False


def _extract_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        text = (response.text or "").strip()
        return text or response.reason_phrase
    if isinstance(payload, dict):
        # ARM wraps failures as {"error": {"code": ..., "message": ...}}
        err = payload.get("error")
        if isinstance(err, dict):
            code = str(err.get("code") or "").strip()
            message = str(err.get("message") or "").strip()
            if code and message:
                return f"{code}: {message}"
            if code or message:
                return code or message
        return json.dumps(payload, ensure_ascii=False)
    return response.reason_phrase


class AzureArmClient:
    """
    Thin read-only client for Azure Resource Manager.

    Tokens come from `DefaultAzureCredential`; the interactive browser
    credential stays excluded unless `ArmConfig.allow_interactive` is set.
    """

    def __init__(
        self,
        cfg: ArmConfig,
        *,
        credential: Optional[Any] = None,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self._cfg = cfg
        self._credential = credential or DefaultAzureCredential(
            exclude_interactive_browser_credential=not cfg.allow_interactive
        )
        self._http = http_client or httpx.Client(timeout=httpx.Timeout(cfg.timeout_seconds))
        self._owns_http = http_client is None
        self._token: Optional[str] = None
        self._token_expires_at: float = 0.0
        self._subscription_id: Optional[str] = (cfg.subscription_id or "").strip() or None

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "AzureArmClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    def _get_bearer(self) -> str:
        now = time.time()
        if self._token and now < (self._token_expires_at - 60):
            return self._token

        try:
            token = self._credential.get_token(ARM_SCOPE)
        except ClientAuthenticationError as exc:
            raise AuthenticationFailedError(f"Azure authentication failed: {exc.message or exc}") from exc
        self._token = token.token
        self._token_expires_at = float(getattr(token, "expires_on", 0) or 0)
        return self._token

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._get_bearer()}"}

    def authenticate(self) -> str:
        """Acquire a token and resolve the subscription. Returns the subscription id."""
        self._get_bearer()
        return self.subscription_id

    @property
    def subscription_id(self) -> str:
        if self._subscription_id is None:
            self._subscription_id = self._resolve_default_subscription()
        return self._subscription_id

    def _resolve_default_subscription(self) -> str:
        url = f"{ARM_ENDPOINT}/subscriptions"
        try:
            for item in self.iter_values(url, params={"api-version": SUBSCRIPTIONS_API_VERSION}):
                if str(item.get("state") or "").lower() != "enabled":
                    continue
                sub_id = str(item.get("subscriptionId") or "").strip()
                if sub_id:
                    logger.info(
                        "Using default subscription: id=%s name=%s", sub_id, item.get("displayName") or ""
                    )
                    return sub_id
        except ArmRequestError as exc:
            raise AuthenticationFailedError(f"Unable to list subscriptions: {exc}") from exc
        raise AuthenticationFailedError("No enabled subscription is visible to the current credential.")

    def get_json(self, url: str, *, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        query: Dict[str, str] = {}
        if "api-version=" not in url:
            query["api-version"] = self._cfg.api_version
        if params:
            query.update({k: str(v) for k, v in params.items() if v is not None})

        try:
            resp = self._http.get(url, headers=self._headers(), params=query)
        except httpx.TimeoutException as exc:
            raise ArmRequestError(f"ARM timeout calling {url}", payload={"url": url}) from exc
        except httpx.HTTPError as exc:
            raise ArmRequestError(f"ARM call failed: {type(exc).__name__}: {exc}", payload={"url": url}) from exc

        if resp.status_code < 400:
            try:
                payload = resp.json()
            except ValueError as exc:
                raise ArmRequestError("ARM response was not valid JSON.", payload={"url": url}) from exc
            if not isinstance(payload, dict):
                raise ArmRequestError("ARM response was not a JSON object.", payload={"url": url})
            return payload

        detail = _extract_detail(resp)
        status = int(resp.status_code)
        payload = {"url": url, "status_code": status, "detail": detail}
        if status in {401, 403}:
            raise ArmAuthError(f"ARM authorization failed: {detail}", status_code=status, detail=detail, payload=payload)
        if status == 404:
            raise ArmNotFoundError(detail or "Not found.", status_code=status, detail=detail, payload=payload)
        if status == 429:
            raise ArmThrottledError(detail or "Throttled.", status_code=status, detail=detail, payload=payload)
        if 500 <= status <= 599:
            raise ArmServerError(detail or "ARM server error.", status_code=status, detail=detail, payload=payload)
        raise ArmRequestError(
            f"ARM error (status={status}): {detail}",
            status_code=status,
            detail=detail,
            payload=payload,
        )

    def iter_values(self, url: str, *, params: Optional[Dict[str, str]] = None) -> Iterator[Dict[str, Any]]:
        """Yields `value` items across ARM `nextLink` pages."""
        next_url: Optional[str] = url
        next_params = params
        while next_url:
            payload = self.get_json(next_url, params=next_params)
            values = payload.get("value") if isinstance(payload.get("value"), list) else []
            for item in values:
                if isinstance(item, dict):
                    yield item
            next_url = str(payload.get("nextLink") or "").strip() or None
            # nextLink already carries the full query string.
            next_params = None

    def subscription_url(self) -> str:
        return f"{ARM_ENDPOINT}/subscriptions/{self.subscription_id}"

    def resources_url(self, resource_group: Optional[str] = None) -> str:
        base = self.subscription_url()
        rg = (resource_group or "").strip()
        if rg:
            return f"{base}/resourceGroups/{rg}/resources"
        return f"{base}/resources"

    def resource_scoped_url(self, resource_id: str, provider_path: str) -> str:
        rid = (resource_id or "").strip()
        if not rid.startswith("/"):
            raise ValueError(f"Resource id must start with '/': {resource_id!r}")
        return f"{ARM_ENDPOINT}{rid.rstrip('/')}{provider_path}"

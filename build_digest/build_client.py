from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Protocol
from urllib.parse import quote

import httpx

from .config import API_VERSION, DEFINITION_FILTER
from .models import BuildReason, BuildRecord, BuildStatus
from .utils import is_https_redirect, parse_build_datetime, to_api_timestamp

logger = logging.getLogger(__name__)

CONTINUATION_HEADER = "x-ms-continuationtoken"


class BuildServerError(Exception):
    """Raised when build server operations fail."""


class BuildServerConnectionError(BuildServerError):
    """Raised when the build server is unreachable (network/timeout)."""


class BuildServerApiError(BuildServerError):
    """Raised when the build server returns an error response."""


class BuildServer(Protocol):
    def query_builds(
        self,
        project: str,
        definition_filter: str,
        *,
        max_per_definition: int,
        min_finish_time: datetime,
    ) -> List[BuildRecord]: ...

    def build_details_url(self, build: BuildRecord) -> Optional[str]: ...


class AzureDevOpsBuildClient:
    """Build queries against an Azure DevOps Server / TFS project collection."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 20.0,
    ):
        self._client = httpx.Client(
            base_url=base_url,
            auth=("", token) if token else None,
            follow_redirects=True,
            event_hooks={"response": [_reject_insecure_redirect]},
            transport=transport,
            timeout=timeout,
        )

    def __enter__(self) -> "AzureDevOpsBuildClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def query_builds(
        self,
        project: str,
        definition_filter: str = DEFINITION_FILTER,
        *,
        max_per_definition: int = 1,
        min_finish_time: datetime,
        max_pages: int = 20,
    ) -> List[BuildRecord]:
        params = {
            "api-version": API_VERSION,
            "maxBuildsPerDefinition": max_per_definition,
            "queryOrder": "finishTimeDescending",
            "minTime": to_api_timestamp(min_finish_time),
        }
        if definition_filter and definition_filter != DEFINITION_FILTER:
            params["definitions"] = definition_filter

        path = f"/{quote(project)}/_apis/build/builds"
        builds: List[BuildRecord] = []
        for page in range(max_pages):
            response = self._request("GET", path, params=params)
            page_items = response.json().get("value", [])
            logger.info("Fetched %s builds from page %s", len(page_items), page)
            builds.extend(self._to_model(raw) for raw in page_items)
            token = response.headers.get(CONTINUATION_HEADER)
            if not token:
                break
            params["continuationToken"] = token
        return builds

    def build_details_url(self, build: BuildRecord) -> Optional[str]:
        return build.web_url

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
            return response
        except httpx.RequestError as exc:
            logger.warning("Build server request error %s %s: %s", method, path, exc)
            raise BuildServerConnectionError(f"Build server request failed: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise BuildServerApiError(f"Build server request returned error: {exc}") from exc

    @staticmethod
    def _to_model(raw: dict) -> BuildRecord:
        definition = raw.get("definition") or {}
        web_link = ((raw.get("_links") or {}).get("web") or {}).get("href")
        return BuildRecord(
            id=raw["id"],
            definition_name=definition.get("name") or raw.get("buildNumber") or str(raw["id"]),
            status=BuildStatus.from_result(raw.get("result")),
            reason=BuildReason.from_value(raw.get("reason")),
            start_time=parse_build_datetime(raw.get("startTime")),
            finish_time=parse_build_datetime(raw.get("finishTime")),
            uri=raw.get("uri", ""),
            web_url=web_link or None,
        )


def _reject_insecure_redirect(response: httpx.Response) -> None:
    if not response.has_redirect_location:
        return
    target = response.url.join(response.headers["location"])
    if not is_https_redirect(str(target)):
        raise BuildServerError(f"Refusing to follow redirect to non-HTTPS URL: {target}")

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Any, Dict, Optional

import httpx

from cronbeat.config import DEFAULT_API_URL
from cronbeat.errors import HeartbeatAPIError
from cronbeat.models import CronTask, HeartbeatConfig
from cronbeat.services.schedule import compute_period_and_grace

logger = logging.getLogger(__name__)


def prepare_heartbeat_config(
    task: CronTask,
    *,
    reference_time: datetime,
    heartbeat_group_id: Optional[str] = None,
) -> HeartbeatConfig:
    interval = compute_period_and_grace(task.schedule, reference_time)
    return HeartbeatConfig(
        name=task.display_name,
        period=interval.period_seconds,
        grace=interval.grace_seconds,
        heartbeat_group_id=heartbeat_group_id,
    )


class HeartbeatClient:
    """
    Minimal client for the Better Stack Uptime heartbeat API.

    Only the three calls cronbeat needs: look up a heartbeat group by name,
    create a group, create a heartbeat.
    """

    def __init__(
        self,
        auth_token: str,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        self.api_url = api_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)
        self._headers = {
            "Authorization": f"Bearer {auth_token}",
            "Content-Type": "application/json",
        }

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HeartbeatClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as e:
            raise HeartbeatAPIError(f"{method} {url} failed: {e}") from e

    @staticmethod
    def _json(resp: httpx.Response) -> Dict[str, Any]:
        try:
            return resp.json()
        except ValueError as e:
            raise HeartbeatAPIError(f"invalid JSON in response from {resp.url}") from e

    def get_heartbeat_group_id(self, name: str) -> Optional[str]:
        url: Optional[str] = f"{self.api_url}/heartbeat-groups"
        while url:
            resp = self._request("GET", url)
            if resp.status_code == 404:
                return None
            if resp.status_code != 200:
                raise HeartbeatAPIError(
                    f"listing heartbeat groups failed: HTTP {resp.status_code}", resp.status_code
                )

            body = self._json(resp)
            for group in body.get("data") or []:
                if (group.get("attributes") or {}).get("name") == name:
                    return str(group.get("id"))

            url = (body.get("pagination") or {}).get("next")
        return None

    def create_heartbeat_group(self, name: str) -> str:
        resp = self._request("POST", f"{self.api_url}/heartbeat-groups", json={"name": name})
        if resp.status_code != 201:
            raise HeartbeatAPIError(f"creating heartbeat group failed: HTTP {resp.status_code}", resp.status_code)

        data = self._json(resp).get("data") or {}
        if (data.get("attributes") or {}).get("name") != name:
            raise HeartbeatAPIError(f"heartbeat group {name!r} not found in response")
        return str(data.get("id"))

    def ensure_heartbeat_group(self, name: str) -> str:
        group_id = self.get_heartbeat_group_id(name)
        if group_id is not None:
            logger.info("using heartbeat group %r (%s)", name, group_id)
            return group_id
        group_id = self.create_heartbeat_group(name)
        logger.info("created heartbeat group %r (%s)", name, group_id)
        return group_id

    def create_heartbeat(self, config: HeartbeatConfig) -> str:
        """Register a heartbeat and return the URL cron has to ping."""
        resp = self._request(
            "POST",
            f"{self.api_url}/heartbeats",
            json=config.model_dump(exclude_none=True),
        )
        if resp.status_code != 201:
            raise HeartbeatAPIError(f"creating heartbeat failed: HTTP {resp.status_code}", resp.status_code)

        url = ((self._json(resp).get("data") or {}).get("attributes") or {}).get("url")
        if not url:
            raise HeartbeatAPIError("heartbeat response has no url")
        return url


class FakeHeartbeatClient:
    """Stand-in for dry runs: no network, random heartbeat URLs."""

    base_url = "https://uptime.betterstack.fake.com/heartbeat/"

    def __init__(self) -> None:
        self.created: list[HeartbeatConfig] = []
        self.groups: Dict[str, str] = {}

    def close(self) -> None:
        pass

    def __enter__(self) -> "FakeHeartbeatClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get_heartbeat_group_id(self, name: str) -> Optional[str]:
        return self.groups.get(name)

    def create_heartbeat_group(self, name: str) -> str:
        group_id = f"{len(self.groups) + 1:03d}"
        self.groups[name] = group_id
        return group_id

    def ensure_heartbeat_group(self, name: str) -> str:
        return self.get_heartbeat_group_id(name) or self.create_heartbeat_group(name)

    def create_heartbeat(self, config: HeartbeatConfig) -> str:
        self.created.append(config)
        return self.base_url + secrets.token_hex(10)

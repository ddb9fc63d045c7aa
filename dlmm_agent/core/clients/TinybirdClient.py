from __future__ import annotations

import gzip
import json

import httpx

from dlmm_agent.core.adapters.models import TelemetryEvent, event_payload
from dlmm_agent.core.clients.HttpClient import HttpClient
from dlmm_agent.core.config import get_tinybird_settings


class TinybirdClient(HttpClient):
    def __init__(self, url: str | None = None, token: str | None = None):
        default_url, default_token = get_tinybird_settings()
        self.url = (url or default_url).rstrip("/")
        token = token or default_token
        if not token:
            raise ValueError("Tinybird token not configured")
        super().__init__(headers={"Authorization": f"Bearer {token}"})

    async def log_event(self, event: TelemetryEvent) -> httpx.Response:
        body = gzip.compress(json.dumps(event_payload(event)).encode("utf-8"))
        return await self._request(
            "POST",
            f"{self.url}/v0/events",
            params={"name": event.type},
            headers={"Content-Encoding": "gzip"},
            content=body,
        )

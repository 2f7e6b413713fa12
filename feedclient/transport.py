"""HTTP transport for the notification cache: sends requests only, no caching."""
import json
import logging
import threading
from typing import Any, Iterable, Iterator

import httpx

from feedclient.config import REQUEST_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class TransportError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def parse_events(lines: Iterable[str]) -> Iterator[dict[str, Any]]:
    """Turn Server-Sent Events lines into `{"event_type", "record"}` dicts. Comments are skipped."""
    event_type: str | None = None
    data: list[str] = []
    for line in lines:
        if not line:
            if data:
                try:
                    record = json.loads("\n".join(data))
                except ValueError:
                    logger.warning("Skipping event with undecodable data")
                else:
                    yield {"event_type": event_type or "message", "record": record}
            event_type, data = None, []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event_type = value
        elif field == "data":
            data.append(value)


class EventStream:
    """One connection to the push endpoint. Iterate for events; close() from any thread."""

    def __init__(self, client: httpx.Client, path: str) -> None:
        self._client = client
        self._path = path
        self._response: httpx.Response | None = None
        self._closed = threading.Event()

    def __iter__(self) -> Iterator[dict[str, Any]]:
        if self._closed.is_set():
            return
        request = self._client.build_request("GET", self._path, headers={"Accept": "text/event-stream"})
        try:
            self._response = self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(f"Push stream unavailable: {e}") from e
        try:
            if not self._response.is_success:
                raise TransportError(f"Push stream refused: {self._response.status_code}", self._response.status_code)
            yield from parse_events(self._response.iter_lines())
        except httpx.HTTPError as e:
            if not self._closed.is_set():
                raise TransportError(f"Push stream interrupted: {e}") from e
        finally:
            self._response.close()

    def close(self) -> None:
        self._closed.set()
        if self._response is not None:
            self._response.close()


class HttpTransport:
    """Notification and friend-request endpoints of the API, authenticated with a bearer token."""

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"Authorization": f"Bearer {token}"},
            transport=transport,
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            r = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(str(e)) from e
        try:
            body = r.json() if r.content else {}
        except ValueError:
            raise TransportError(f"API error: {r.status_code}", r.status_code)
        if not r.is_success or not body.get("success", False):
            raise TransportError(body.get("error") or f"API error: {r.status_code}", r.status_code)
        return body.get("data")

    def fetch_notifications(self, page: int = 1, limit: int = 50) -> list[dict[str, Any]]:
        data = self._request("GET", "/api/notifications/", params={"page": page, "limit": limit})
        return data["notifications"]

    def accept_friend_request(self, from_user_id: int) -> dict[str, Any]:
        return self._request("POST", f"/api/friends/requests/{from_user_id}/accept/")

    def decline_friend_request(self, from_user_id: int) -> dict[str, Any]:
        return self._request("POST", f"/api/friends/requests/{from_user_id}/decline/")

    def mark_read(self, notification_id: int) -> dict[str, Any]:
        return self._request("PATCH", f"/api/notifications/{notification_id}/mark-read/")

    def mark_all_read(self) -> dict[str, Any]:
        return self._request("PATCH", "/api/notifications/mark-all-read/")

    def stream(self) -> EventStream:
        return EventStream(self._client, "/api/notifications/stream/")

    def close(self) -> None:
        self._client.close()

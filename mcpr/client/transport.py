"""Клиентские транспорты MCP: дочерний процесс по stdio и HTTP POST.

Каждый транспорт удовлетворяет протоколу :class:`ClientTransport`:
``request`` отправляет конверт и блокируется до ответа с тем же id,
``send`` отправляет уведомление без ожидания ответа.
"""

from __future__ import annotations

import json
import logging
import subprocess
from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

import httpx

from mcpr.core.config import SESSION_HEADER, ClientConfig
from mcpr.core.errors import TransportError

logger = logging.getLogger("mcpr.client.transport")


@runtime_checkable
class ClientTransport(Protocol):
    """Абстрактный транспорт клиента MCP."""

    def request(self, envelope: Dict[str, Any]) -> Dict[str, Any]: ...
    def send(self, envelope: Dict[str, Any]) -> None: ...
    def close(self) -> None: ...


class StdioClientTransport:
    """Запускает MCP-сервер дочерним процессом и общается через stdin/stdout.

    Одновременно может быть только один запрос в полёте: ответы сопоставляются
    последовательным чтением строк.
    """

    def __init__(self, command: str, *args: str, env: Optional[Mapping[str, str]] = None) -> None:
        self._argv: List[str] = [command, *args]
        try:
            self._process: Optional[subprocess.Popen] = subprocess.Popen(
                self._argv,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=None,
                env=dict(env) if env is not None else None,
                text=True,
                encoding="utf-8",
                bufsize=1,
            )
        except OSError as exc:
            raise TransportError(f"Failed to start MCP server {self._argv}: {exc}") from exc
        logger.debug("Spawned MCP server %s (pid=%s)", self._argv, self._process.pid)

    def write(self, envelope: Dict[str, Any]) -> None:
        """Пишет один конверт строкой JSON в stdin сервера."""
        process = self._require_process()
        if process.stdin is None:
            raise TransportError("MCP server stdin is not connected")
        try:
            process.stdin.write(json.dumps(envelope) + "\n")
            process.stdin.flush()
        except (BrokenPipeError, OSError) as exc:
            raise TransportError(f"Failed to write to MCP server: {exc}") from exc

    def read(self) -> Dict[str, Any]:
        """Читает следующую JSON-строку из stdout сервера."""
        process = self._require_process()
        if process.stdout is None:
            raise TransportError("MCP server stdout is not connected")
        while True:
            line = process.stdout.readline()
            if not line:
                raise TransportError(f"MCP server closed the stream (exit code {process.poll()})")
            if not line.strip():
                continue
            try:
                message = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Skipping non-JSON line from server: %r", line[:200])
                continue
            if isinstance(message, dict):
                return message
            logger.warning("Skipping unexpected message from server: %r", message)

    def request(self, envelope: Dict[str, Any]) -> Dict[str, Any]:
        self.write(envelope)
        expected = envelope.get("id")
        while True:
            message = self.read()
            if "id" in message and message.get("id") == expected:
                return message
            logger.debug("Skipping message not matching id=%r: %s", expected, message)

    def send(self, envelope: Dict[str, Any]) -> None:
        self.write(envelope)

    def close(self) -> None:
        if self._process is None:
            return
        process, self._process = self._process, None
        if process.stdin:
            try:
                process.stdin.close()
            except OSError:
                pass
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            logger.warning("MCP server did not exit in time, terminating (pid=%s)", process.pid)
            process.terminate()
            process.wait()
        if process.stdout:
            process.stdout.close()

    def _require_process(self) -> subprocess.Popen:
        if self._process is None:
            raise TransportError("Transport closed")
        return self._process


class HttpClientTransport:
    """JSON-RPC поверх HTTP POST; каждый вызов — отдельный round trip.

    Заголовок `mcp-session-id`, выданный сервером, запоминается и
    отправляется в последующих запросах.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_ms: Optional[int] = None,
        client: Optional[httpx.Client] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._url = url
        self._session_id: Optional[str] = None
        self._extra_headers = dict(headers or {})
        self._owns_client = client is None
        if client is None:
            timeout = timeout_ms if timeout_ms is not None else ClientConfig.from_env().timeout_ms
            client = httpx.Client(timeout=(timeout / 1000) or None)
        self._client = client

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    def request(self, envelope: Dict[str, Any]) -> Dict[str, Any]:
        response = self._post(envelope)
        parsed = self._parse_response(response)
        if not isinstance(parsed, dict):
            raise TransportError(f"Unexpected response body from {self._url}: {parsed!r}")
        return parsed

    def send(self, envelope: Dict[str, Any]) -> None:
        self._post(envelope)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _post(self, envelope: Dict[str, Any]) -> httpx.Response:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
            **self._extra_headers,
        }
        if self._session_id:
            headers[SESSION_HEADER] = self._session_id

        try:
            logger.debug("POST %s payload=%s", self._url, envelope)
            response = self._client.post(self._url, json=envelope, headers=headers)
        except httpx.HTTPError as exc:
            raise TransportError(f"HTTP request to {self._url} failed: {exc}") from exc

        session_id = response.headers.get(SESSION_HEADER)
        if session_id:
            self._session_id = session_id
        # JSON-RPC ошибки приходят и с 4xx (например, -32700 с 400), тело разбираем всегда.
        if response.status_code >= 400 and not response.content:
            raise TransportError(f"MCP server returned HTTP {response.status_code}")
        return response

    @staticmethod
    def _parse_response(response: httpx.Response) -> Any:
        content_type = (response.headers.get("content-type") or "").lower()

        if "text/event-stream" in content_type:
            payload: Any = None
            for line in response.text.splitlines():
                if not line.startswith("data:"):
                    continue
                data_str = line[len("data:") :].strip()
                if not data_str:
                    continue
                try:
                    payload = json.loads(data_str)
                except json.JSONDecodeError:
                    logger.warning("Skipping non-JSON SSE data: %r", data_str[:200])
            if payload is None:
                raise TransportError("Empty event stream response")
            return payload

        if not response.content:
            raise TransportError(f"Empty response body (HTTP {response.status_code})")
        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise TransportError(f"Invalid JSON in response: {exc}") from exc


__all__ = ["ClientTransport", "HttpClientTransport", "StdioClientTransport"]

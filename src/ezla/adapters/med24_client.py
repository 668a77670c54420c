"""
ezla/adapters/med24_client.py: Клиент телемедицинской платформы Med24.

Внешний API (HTTP Basic):
    • POST /api/v2/external/visit            : создать визит (queue=urgent)
    • GET  /api/v2/external/visit/{id}       : статус визита
    • POST /api/v2/external/visit/{id}/files : загрузить файл (multipart ``file``)

Создание визита повторяется до ``max_retries`` раз при сетевой ошибке,
ответе не в JSON и 5xx. Ошибки возвращаются как ``UpstreamError``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from ezla.config import get_settings
from ezla.exceptions import ConfigurationError, UpstreamError
from ezla.models.visit import Med24VisitRequest

logger = logging.getLogger(__name__)

VISIT_PATH = "/api/v2/external/visit"


class Med24Client:
    """Асинхронный клиент Med24 поверх httpx."""

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_delay: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._auth = httpx.BasicAuth(username, password)
        self._timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=self._auth,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def create_visit(self, visit: Med24VisitRequest) -> dict[str, Any]:
        """Создать срочный визит. Возвращает объект визита Med24 (с ``id``)."""
        payload = visit.model_dump(mode="json")
        last_error = "no attempts made"

        async with self._client() as client:
            for attempt in range(1, self.max_retries + 1):
                logger.info("Med24 create visit attempt %d/%d", attempt, self.max_retries)
                try:
                    response = await client.post(VISIT_PATH, json=payload)
                except httpx.HTTPError as exc:
                    last_error = f"network error: {exc}"
                    logger.warning("Med24 fetch error (attempt %d): %s", attempt, exc)
                    await self._pause(attempt)
                    continue

                try:
                    data = response.json()
                except ValueError:
                    last_error = f"non-JSON response (HTTP {response.status_code})"
                    logger.warning(
                        "Med24 returned non-JSON response (attempt %d): %s",
                        attempt, response.text[:500],
                    )
                    await self._pause(attempt)
                    continue

                if response.status_code >= 500:
                    last_error = f"server error {response.status_code}"
                    logger.warning(
                        "Med24 server error %d (attempt %d)", response.status_code, attempt,
                    )
                    await self._pause(attempt)
                    continue

                if response.is_error:
                    raise UpstreamError(
                        "Med24 rejected visit request",
                        details={"status": response.status_code, "response": data},
                    )
                if not isinstance(data, dict) or not data.get("id"):
                    raise UpstreamError("Med24 visit response has no id", details={"response": data})
                logger.info("Med24 visit created: %s", data["id"])
                return data

        raise UpstreamError(
            "Med24 visit creation failed after retries",
            details={"attempts": self.max_retries, "last_error": last_error},
        )

    async def get_visit(self, visit_id: str) -> dict[str, Any]:
        """Получить текущее состояние визита."""
        async with self._client() as client:
            try:
                response = await client.get(f"{VISIT_PATH}/{visit_id}")
            except httpx.HTTPError as exc:
                raise UpstreamError(f"Med24 request failed: {exc}") from exc
        return self._json_or_raise(response, "get visit")

    async def upload_file(
        self, visit_id: str, filename: str, content: bytes, content_type: str,
    ) -> dict[str, Any]:
        """Загрузить один файл к визиту."""
        files = {"file": (filename, content, content_type)}
        async with self._client() as client:
            try:
                response = await client.post(f"{VISIT_PATH}/{visit_id}/files", files=files)
            except httpx.HTTPError as exc:
                raise UpstreamError(f"Med24 upload failed: {exc}") from exc
        return self._json_or_raise(response, "upload file")

    async def _pause(self, attempt: int) -> None:
        if attempt < self.max_retries and self.retry_delay:
            logger.info("Retrying Med24 in %.1fs...", self.retry_delay)
            await asyncio.sleep(self.retry_delay)

    @staticmethod
    def _json_or_raise(response: httpx.Response, operation: str) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            data = {"raw": response.text[:500]}
        if response.is_error:
            raise UpstreamError(
                f"Med24 {operation} failed",
                details={"status": response.status_code, "response": data},
            )
        return data if isinstance(data, dict) else {"data": data}


def get_med24_client() -> Med24Client:
    """
    Клиент Med24 из настроек.

    Raises:
        ConfigurationError: URL или учётные данные Med24 не заданы.
    """
    settings = get_settings()
    if not settings.med24_configured:
        raise ConfigurationError("Med24 API not configured")
    return Med24Client(
        settings.med24_api_url,
        settings.med24_api_username,
        settings.med24_api_password,
        timeout=settings.med24_timeout_seconds,
        max_retries=settings.med24_max_retries,
        retry_delay=settings.med24_retry_delay_seconds,
    )

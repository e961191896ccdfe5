"""Webhook delivery of task snapshots.

WebhookDelivery POSTs a serialized Task to a push notification config's
URL and retries failures with bounded exponential backoff. Delivery
failures are logged and dropped; they never propagate to the caller.
"""

import asyncio
from typing import Optional

import httpx

from a2a_runtime.errors import DeliveryFailedError
from a2a_runtime.observability.logging import get_logger
from a2a_runtime.observability.metrics import get_metrics_collector
from a2a_runtime.push.models import PushNotificationConfig
from a2a_runtime.tasks.models import Task

logger = get_logger(__name__)

NOTIFICATION_TOKEN_HEADER = "X-A2A-Notification-Token"


class WebhookDelivery:
    """Delivers task snapshots to webhook receivers.

    The delay before attempt n+1 is ``backoff_base * backoff_factor ** (n - 1)``,
    so the defaults wait 0.5s then 1s across three attempts.

    Attributes:
        max_attempts: Maximum POST attempts per notification
        backoff_base: Delay before the first retry in seconds
        backoff_factor: Multiplier applied to the delay after each failure

    Example:
        >>> delivery = WebhookDelivery()
        >>> try:
        ...     delivered = await delivery.deliver(config, task)
        ... finally:
        ...     await delivery.close()
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        max_attempts: int = 3,
        backoff_base: float = 0.5,
        backoff_factor: float = 2.0,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the delivery client.

        Args:
            client: HTTP client to use; one is created (and owned) when omitted
            max_attempts: Maximum POST attempts per notification
            backoff_base: Delay before the first retry in seconds
            backoff_factor: Multiplier applied to the delay after each failure
            timeout: Timeout for a single POST in seconds

        Raises:
            ValueError: If max_attempts is less than 1
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_factor = backoff_factor

    def backoff_delay(self, attempt: int) -> float:
        """Return the delay to wait after failed attempt number ``attempt`` (1-based)."""
        return self.backoff_base * self.backoff_factor ** (attempt - 1)

    async def deliver(self, config: PushNotificationConfig, task: Task) -> bool:
        """POST a task snapshot to the config's URL, retrying failures.

        Args:
            config: Target push notification config
            task: Task snapshot to send

        Returns:
            True if a 2xx response was received, False once every attempt failed
        """
        body = task.model_dump(mode="json", by_alias=True, exclude_none=True)
        headers = self.build_headers(config)
        metrics = get_metrics_collector()

        for attempt in range(1, self.max_attempts + 1):
            try:
                await self._post(config.url, body, headers)
            except DeliveryFailedError as e:
                metrics.record_push_attempt("failure")
                logger.warning(
                    "push_delivery_failed",
                    task_id=task.id,
                    config_id=config.id,
                    url=config.url,
                    attempt=attempt,
                    error=e.detail,
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.backoff_delay(attempt))
                continue

            metrics.record_push_attempt("success")
            metrics.record_push_delivery("delivered")
            logger.debug(
                "push_delivered",
                task_id=task.id,
                config_id=config.id,
                url=config.url,
                attempt=attempt,
            )
            return True

        metrics.record_push_delivery("dropped")
        logger.error(
            "push_delivery_dropped",
            task_id=task.id,
            config_id=config.id,
            url=config.url,
            attempts=self.max_attempts,
        )
        return False

    @staticmethod
    def build_headers(config: PushNotificationConfig) -> dict[str, str]:
        """Build request headers for a config.

        Args:
            config: Push notification config

        Returns:
            Headers including the notification token and authorization when set
        """
        headers = {"Content-Type": "application/json"}
        if config.token:
            headers[NOTIFICATION_TOKEN_HEADER] = config.token
        auth = config.authentication
        if auth is not None and auth.credentials:
            scheme = auth.schemes[0] if auth.schemes else "Bearer"
            headers["Authorization"] = f"{scheme} {auth.credentials}"
        return headers

    async def _post(self, url: str, body: dict, headers: dict[str, str]) -> None:
        try:
            response = await self._client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise DeliveryFailedError(url, f"{type(e).__name__}: {e}") from e
        if not response.is_success:
            raise DeliveryFailedError(url, f"HTTP {response.status_code}")

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

"""
StudioDesk Webhook Dispatcher

Delivers task event payloads to a single configured URL with bounded retry
and exponential backoff. Delivery is fire-and-forget for callers: `submit`
hands the payload to a worker pool and only the terminal outcome is logged.
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx

from studiodesk.config import Config
from studiodesk.errors import DispatchError
from studiodesk.logging import get_logger, log_extra
from studiodesk.models.domain import Task, WebhookEvent

logger = get_logger(__name__)

MAX_ATTEMPTS = 3
RETRY_DELAYS = (1.0, 2.0, 4.0)
REQUEST_TIMEOUT = 10.0
NOT_CONFIGURED = "not configured"


@dataclass
class WebhookResult:
    """Outcome of one `send` call."""
    success: bool
    attempts: int
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success, "attempts": self.attempts}
        if self.error is not None:
            data["error"] = self.error
        return data


def build_task_payload(event: str, task: Task) -> Dict[str, Any]:
    """Wrap a task record in the outbound `{event, task}` envelope."""
    if event not in WebhookEvent.ALL:
        raise ValueError(f"Unknown webhook event: {event}")
    return {"event": event, "task": task.to_dict()}


def _payload_fields(payload: Dict[str, Any]) -> Dict[str, Any]:
    task = payload.get("task") if isinstance(payload.get("task"), dict) else {}
    return {"event": payload.get("event"), "task_id": task.get("id")}


class WebhookDispatcher:
    """
    Outbound webhook client.

    Example:
        dispatcher = WebhookDispatcher.from_config(load_config())
        result = dispatcher.send({"event": "task_created", "task": {...}})
        future = dispatcher.task_created(task)  # non-blocking
    """

    def __init__(
        self,
        url: Optional[str],
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = REQUEST_TIMEOUT,
        sleep: Callable[[float], None] = time.sleep,
        max_workers: int = 4,
    ) -> None:
        self.url = url or None
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Config) -> "WebhookDispatcher":
        return cls(config.webhook_url, max_workers=config.webhook_workers)

    @property
    def configured(self) -> bool:
        return self.url is not None

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        with self._lock:
            if self._client is None:
                self._client = httpx.Client(
                    headers={"Content-Type": "application/json"},
                    follow_redirects=True,
                )
            return self._client

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="studiodesk-webhook",
                )
            return self._executor

    def _post(self, payload: Dict[str, Any]) -> int:
        """One delivery attempt. Raises DispatchError on any failure."""
        try:
            resp = self._get_client().post(
                self.url, json=payload, timeout=self.timeout, follow_redirects=True
            )
        except httpx.TimeoutException as exc:
            raise DispatchError(f"Timed out after {self.timeout:g}s: {exc}", retryable=True) from exc
        except httpx.HTTPError as exc:
            raise DispatchError(str(exc) or exc.__class__.__name__, retryable=True) from exc

        status = resp.status_code
        if 200 <= status < 300:
            return status
        # Redirects are followed; a 3xx here has no usable Location.
        # Client errors will fail the same way again; 429 is the exception.
        retryable = not (400 <= status < 500 and status != 429)
        raise DispatchError(
            f"HTTP {status}: {resp.reason_phrase}",
            status_code=status,
            retryable=retryable,
        )

    def send(self, payload: Dict[str, Any]) -> WebhookResult:
        """
        Deliver a payload, retrying transient failures.

        Returns a WebhookResult; never raises for delivery problems.
        """
        fields = _payload_fields(payload)
        if not self.url:
            logger.warning("webhook_not_configured", extra=log_extra(**fields))
            return WebhookResult(success=False, attempts=0, error=NOT_CONFIGURED)

        last_error: Optional[str] = None
        for attempt in range(1, MAX_ATTEMPTS + 1):
            logger.info(
                "webhook_attempt",
                extra=log_extra(attempt=attempt, max_attempts=MAX_ATTEMPTS, **fields),
            )
            try:
                status = self._post(payload)
            except DispatchError as exc:
                last_error = str(exc)
                logger.warning(
                    "webhook_attempt_failed",
                    extra=log_extra(
                        attempt=attempt,
                        status_code=exc.status_code,
                        retryable=exc.retryable,
                        error=last_error,
                        **fields,
                    ),
                )
                if not exc.retryable:
                    return WebhookResult(success=False, attempts=attempt, error=last_error)
                if attempt < MAX_ATTEMPTS:
                    delay = RETRY_DELAYS[attempt - 1]
                    logger.info("webhook_retry_scheduled", extra=log_extra(delay_seconds=delay, **fields))
                    self._sleep(delay)
                continue

            logger.info("webhook_delivered", extra=log_extra(attempt=attempt, status_code=status, **fields))
            return WebhookResult(success=True, attempts=attempt)

        logger.error("webhook_attempts_exhausted", extra=log_extra(error=last_error, **fields))
        return WebhookResult(success=False, attempts=MAX_ATTEMPTS, error=last_error or "Unknown error")

    def submit(self, payload: Dict[str, Any]) -> "Future[WebhookResult]":
        """Run `send` on the worker pool without waiting for it."""
        future = self._get_executor().submit(self.send, payload)
        future.add_done_callback(lambda f: self._log_outcome(payload, f))
        return future

    def _log_outcome(self, payload: Dict[str, Any], future: "Future[WebhookResult]") -> None:
        fields = _payload_fields(payload)
        exc = future.exception()
        if exc is not None:
            logger.error("webhook_dispatch_crashed", extra=log_extra(error=str(exc), **fields))
            return
        result = future.result()
        if result.success:
            logger.debug("webhook_dispatch_done", extra=log_extra(attempts=result.attempts, **fields))
        else:
            logger.error(
                "webhook_dispatch_failed",
                extra=log_extra(attempts=result.attempts, error=result.error, **fields),
            )

    # Event helpers
    def task_created(self, task: Task) -> "Future[WebhookResult]":
        return self.submit(build_task_payload(WebhookEvent.TASK_CREATED, task))

    def task_updated(self, task: Task) -> "Future[WebhookResult]":
        return self.submit(build_task_payload(WebhookEvent.TASK_UPDATED, task))

    def task_deleted(self, task: Task) -> "Future[WebhookResult]":
        return self.submit(build_task_payload(WebhookEvent.TASK_DELETED, task))

    def task_status_changed(self, task: Task) -> "Future[WebhookResult]":
        return self.submit(build_task_payload(WebhookEvent.TASK_STATUS_CHANGED, task))

    def close(self, wait: bool = True) -> None:
        """Shut down the worker pool and the HTTP client."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)
        with self._lock:
            if self._client is not None and self._owns_client:
                self._client.close()
                self._client = None

"""HTTP client for the attachment webhook (uploads) and the rewriting proxy (downloads)."""

import random
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Tuple

import httpx
from pydantic import ValidationError

from common.constants import (
    HTTP_TIMEOUT_SECONDS,
    RATE_LIMIT_MAX_SECONDS,
    RATE_LIMIT_MIN_SECONDS,
    TRANSPORT_BACKOFF_BASE,
    TRANSPORT_MAX_ATTEMPTS,
)
from common.logging_config import get_logger
from vault.exceptions import (
    NetworkError,
    RateLimitedError,
    UploadExhaustedError,
    UploadResponseError,
)
from vault.schemas import WebhookMessage

logger = get_logger(__name__)


def proxied_url(proxy_base: str, url: str) -> str:
    """Rewrite a stored attachment URL into a fetchable proxy URL."""
    return f"{proxy_base.rstrip('/')}/?{url}"


class WebhookClient:
    """
    HTTP client for chunk uploads and downloads with retry logic.

    Two independent retry counters apply to every request:
    transport failures and 5xx responses are retried up to max_attempts
    in total with 2 ** attempt seconds between attempts, while HTTP 429
    is retried without a cap after a random 5-15 second wait.
    """

    def __init__(
        self,
        http: Optional[httpx.Client] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        max_attempts: int = TRANSPORT_MAX_ATTEMPTS,
        rate_limit_budget: Optional[float] = None,
        sleep: Optional[Callable[[float], None]] = None,
        rng: Optional[random.Random] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Initialize webhook client.

        Args:
            http: Pre-built httpx client (tests pass one with a MockTransport)
            timeout: Per-request timeout in seconds
            max_attempts: Transport attempts per request before giving up
            rate_limit_budget: Seconds a single request may spend waiting out
                HTTP 429 responses; None waits forever
            sleep: Blocking wait used between retries
            rng: Random source for rate-limit backoff
            cancel_event: When set, pending retries are abandoned
        """
        self.http = http or httpx.Client(timeout=timeout, follow_redirects=True)
        self.max_attempts = max_attempts
        self.rate_limit_budget = rate_limit_budget
        self.cancel_event = cancel_event
        self._rng = rng or random.Random()
        if sleep is not None:
            self._sleep = sleep
        elif cancel_event is not None:
            self._sleep = cancel_event.wait
        else:
            self._sleep = time.sleep

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def _request_with_retry(
        self,
        label: str,
        send: Callable[[], httpx.Response],
    ) -> httpx.Response:
        """
        Issue a request, retrying transport failures and rate limits.

        Args:
            label: Prefix for log lines (e.g. "[Chunk 3]")
            send: Performs one attempt and returns the response

        Returns:
            First response that is neither 429 nor 5xx, or the last 5xx
            response once the attempt budget is spent

        Raises:
            NetworkError: Transport failures exhausted the attempt budget,
                the rate-limit budget ran out, or the request was cancelled
        """
        attempts = 0
        rate_limited_waited = 0.0

        while True:
            if self._cancelled():
                raise NetworkError(f"{label} cancelled")

            try:
                response = send()
                if response.status_code == 429:
                    raise RateLimitedError(
                        f"{label} rate limited",
                        retry_after=_retry_after(response),
                    )
            except RateLimitedError as limited:
                delay = self._rng.uniform(RATE_LIMIT_MIN_SECONDS, RATE_LIMIT_MAX_SECONDS)
                if (
                    self.rate_limit_budget is not None
                    and rate_limited_waited + delay > self.rate_limit_budget
                ):
                    raise NetworkError(
                        f"{label} still rate limited after waiting {rate_limited_waited:.1f}s"
                    ) from limited
                rate_limited_waited += delay
                hint = f" (server asked for {limited.retry_after}s)" if limited.retry_after is not None else ""
                logger.warning(f"{label} Rate limited{hint}. Sleeping {delay:.1f}s")
                self._sleep(delay)
                continue
            except httpx.TransportError as e:
                attempts += 1
                if attempts >= self.max_attempts:
                    logger.error(
                        f"{label} Network error (max retries exceeded, {attempts}/{self.max_attempts}): "
                        f"{type(e).__name__}: {e}"
                    )
                    raise NetworkError(
                        f"{label} transport failure after {attempts} attempts: {e}"
                    ) from e
                delay = TRANSPORT_BACKOFF_BASE ** attempts
                logger.warning(
                    f"{label} Request failed (attempt {attempts}/{self.max_attempts}): "
                    f"{type(e).__name__}: {e}. Retrying in {delay}s"
                )
                self._sleep(delay)
                continue

            if response.status_code >= 500:
                attempts += 1
                if attempts >= self.max_attempts:
                    logger.error(
                        f"{label} Server error (max retries exceeded): status={response.status_code}"
                    )
                    return response
                delay = TRANSPORT_BACKOFF_BASE ** attempts
                logger.warning(
                    f"{label} Server error (attempt {attempts}/{self.max_attempts}): "
                    f"status={response.status_code}, retrying in {delay}s"
                )
                self._sleep(delay)
                continue

            return response

    def upload_chunk(self, webhook_url: str, index: int, chunk_path: Path) -> Tuple[str, str]:
        """
        Post one staged chunk to the webhook as a multipart file field.

        Args:
            webhook_url: Destination endpoint
            index: Chunk index, used for logging and errors
            chunk_path: Staged payload; reopened on every attempt

        Returns:
            Tuple of (message_id, attachment_url)

        Raises:
            UploadExhaustedError: Retry budget spent or the endpoint rejected the upload
            UploadResponseError: Endpoint accepted the upload but returned no locator
        """
        label = f"[Chunk {index}]"
        chunk_path = Path(chunk_path)

        def send() -> httpx.Response:
            with open(chunk_path, 'rb') as f:
                return self.http.post(
                    webhook_url,
                    params={'wait': 'true'},
                    files={'file': (chunk_path.name, f, 'application/octet-stream')},
                )

        try:
            response = self._request_with_retry(label, send)
        except NetworkError as e:
            raise UploadExhaustedError(index, str(e)) from e

        if response.status_code >= 400:
            raise UploadExhaustedError(
                index, f"upload rejected with status {response.status_code}: {response.text[:200]}"
            )

        try:
            message = WebhookMessage.model_validate_json(response.content)
        except ValidationError as e:
            raise UploadResponseError(index, f"malformed upload response: {e}") from e

        if not message.attachments:
            raise UploadResponseError(index, "upload response has no attachments")

        url = message.attachments[0].url
        logger.debug(f"{label} Uploaded [message_id={message.id}]")
        return message.id, url

    def fetch_chunk(self, url: str, index: int) -> bytes:
        """
        Download one chunk body.

        Args:
            url: Fully proxied download URL
            index: Chunk index, used for logging and errors

        Returns:
            Raw chunk bytes

        Raises:
            NetworkError: Transport failures exhausted, or non-success status
        """
        label = f"[Chunk {index}]"
        response = self._request_with_retry(label, lambda: self.http.get(url))
        if response.status_code != 200:
            raise NetworkError(
                f"{label} download failed with status {response.status_code}"
            )
        return response.content

    def close(self) -> None:
        """Close the HTTP session."""
        self.http.close()

    def __enter__(self) -> 'WebhookClient':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get('Retry-After')
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None

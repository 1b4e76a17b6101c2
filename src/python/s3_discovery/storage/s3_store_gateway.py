"""S3 (and S3-compatible) implementation of the store gateway.

All calls go through one boto3 client, which is thread-safe and owns
the connection pool shared by the announce loop and discovery queries.
botocore's own retries are disabled: only throttling responses are
retried here, with capped exponential backoff.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Iterator

from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..config import DiscoveryConfig
from ..exceptions import ObjectNotFoundError, StoreError, StoreThrottledError
from ..metrics import STORE_OPERATION_COUNTER, STORE_OPERATION_DURATION_HISTOGRAM
from ..models import BucketStatus
from .credentials import create_session
from .store_gateway import StoreGateway

logger = logging.getLogger(__name__)

THROTTLING_ERROR_CODES = frozenset({
    "SlowDown",
    "Throttling",
    "ThrottlingException",
    "ThrottledException",
    "RequestThrottled",
    "RequestThrottledException",
    "RequestLimitExceeded",
    "TooManyRequestsException",
    "BandwidthLimitExceeded",
})
NOT_FOUND_ERROR_CODES = frozenset({"NoSuchKey", "NotFound", "404"})

# Throttling backoff: attempts include the first call
_MAX_ATTEMPTS = 4
_BASE_DELAY = 0.2
_MAX_DELAY = 2.0


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def _status_code(exc: ClientError) -> int | None:
    return exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")


def is_throttling_error(exc: ClientError) -> bool:
    return _error_code(exc) in THROTTLING_ERROR_CODES or _status_code(exc) == 429


def is_not_found_error(exc: ClientError) -> bool:
    return _error_code(exc) in NOT_FOUND_ERROR_CODES


class S3StoreGateway(StoreGateway):
    """Store gateway over a single S3 bucket.

    Parameters:
        bucket_name: Bucket holding the node records.
        client: A boto3 S3 client (or anything with the same methods).
        max_attempts: Attempts per call when the store throttles.
        base_delay: Initial backoff delay in seconds.
        max_delay: Cap on a single backoff delay.
        sleep: Sleep function used between throttled attempts.
    """

    def __init__(
        self,
        bucket_name: str,
        client: Any,
        max_attempts: int = _MAX_ATTEMPTS,
        base_delay: float = _BASE_DELAY,
        max_delay: float = _MAX_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._bucket_name = bucket_name
        self._client = client
        self._max_attempts = max(1, max_attempts)
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._sleep = sleep

    @classmethod
    def from_config(cls, config: DiscoveryConfig) -> S3StoreGateway:
        """Create the boto3 client described by ``config``."""
        if config.path_style_access is None:
            addressing_style = "auto"
        else:
            addressing_style = "path" if config.path_style_access else "virtual"

        client_config = BotoConfig(
            connect_timeout=config.request_timeout,
            read_timeout=config.request_timeout,
            retries={"total_max_attempts": 1, "mode": "standard"},
            s3={"addressing_style": addressing_style},
        )
        region = config.bucket_region if config.uses_default_endpoint else config.endpoint_region
        session = create_session(config)
        client = session.client(
            "s3",
            region_name=region,
            endpoint_url=config.endpoint_url,
            config=client_config,
        )
        logger.debug(
            "Created S3 client (bucket=%s, endpoint=%s, region=%s, credentials=%s)",
            config.bucket_name,
            config.endpoint_url or config.endpoint,
            region,
            config.credentials_type.value,
        )
        return cls(bucket_name=config.bucket_name, client=client)

    @property
    def bucket_name(self) -> str:
        return self._bucket_name

    # ── StoreGateway ──────────────────────────────────────────────

    def put(self, key: str, data: bytes) -> None:
        self._call("put", key, self._client.put_object, Bucket=self._bucket_name, Key=key, Body=data)

    def get(self, key: str) -> bytes:
        def _read() -> bytes:
            response = self._client.get_object(Bucket=self._bucket_name, Key=key)
            return response["Body"].read()

        try:
            return self._call("get", key, _read, allow_not_found=True)
        except _NotFound:
            raise ObjectNotFoundError(key) from None

    def list(self, prefix: str) -> Iterator[str]:
        continuation_token: str | None = None
        while True:
            kwargs: dict[str, Any] = {"Bucket": self._bucket_name, "Prefix": prefix}
            if continuation_token:
                kwargs["ContinuationToken"] = continuation_token
            page = self._call("list", prefix, self._client.list_objects_v2, **kwargs)

            for s3_object in page.get("Contents") or []:
                key = s3_object.get("Key")
                if key:
                    yield key

            if not page.get("IsTruncated"):
                return
            continuation_token = page.get("NextContinuationToken")
            if not continuation_token:
                return
            logger.debug("Object listing for '%s' is truncated, loading next batch", prefix)

    def delete(self, key: str) -> None:
        try:
            self._call(
                "delete", key, self._client.delete_object, allow_not_found=True, Bucket=self._bucket_name, Key=key
            )
        except _NotFound:
            pass

    def check_bucket(self) -> BucketStatus:
        try:
            response = self._client.head_bucket(Bucket=self._bucket_name)
        except ClientError as exc:
            logger.debug("HeadBucket on '%s' failed", self._bucket_name, exc_info=True)
            return BucketStatus.from_status_code(_status_code(exc))
        except BotoCoreError:
            logger.debug("HeadBucket on '%s' failed", self._bucket_name, exc_info=True)
            return BucketStatus.OTHER
        return BucketStatus.from_status_code(response.get("ResponseMetadata", {}).get("HTTPStatusCode", 200))

    def close(self) -> None:
        self._client.close()

    # ── Internals ─────────────────────────────────────────────────

    def _call(
        self,
        operation: str,
        key: str | None,
        func: Callable[..., Any],
        allow_not_found: bool = False,
        **kwargs: Any,
    ) -> Any:
        for attempt in range(self._max_attempts):
            start_time = time.monotonic()
            outcome = "error"
            try:
                result = func(**kwargs)
                outcome = "success"
                return result
            except ClientError as exc:
                if allow_not_found and is_not_found_error(exc):
                    outcome = "not_found"
                    raise _NotFound() from exc
                if not is_throttling_error(exc):
                    raise StoreError(operation, key, reason=f"{_error_code(exc)}: {exc}") from exc
                outcome = "throttled"
                if attempt + 1 >= self._max_attempts:
                    raise StoreThrottledError(operation, key, attempts=self._max_attempts) from exc
                delay = min(self._base_delay * (2 ** attempt) + random.uniform(0, self._base_delay), self._max_delay)
                logger.warning(
                    "Object store throttled '%s' (attempt %d/%d), retrying in %.2fs",
                    operation,
                    attempt + 1,
                    self._max_attempts,
                    delay,
                )
            except BotoCoreError as exc:
                raise StoreError(operation, key, reason=str(exc)) from exc
            finally:
                STORE_OPERATION_COUNTER.labels(operation=operation, outcome=outcome).inc()
                STORE_OPERATION_DURATION_HISTOGRAM.labels(operation=operation).observe(time.monotonic() - start_time)
            self._sleep(delay)
        raise StoreThrottledError(operation, key, attempts=self._max_attempts)


class _NotFound(Exception):
    """Internal marker for a missing key."""

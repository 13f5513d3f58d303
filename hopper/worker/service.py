"""Background job processing for order, payment, delivery and notification events."""

from __future__ import annotations

import json
import logging
import queue
import threading
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

DEFAULT_WORKERS = 5
DEFAULT_MAX_RETRIES = 3
_POLL_INTERVAL = 0.05


class JobType(str, Enum):
    """The kinds of background jobs the worker knows how to handle."""

    ORDER_CREATED = "order_created"
    ORDER_CONFIRMED = "order_confirmed"
    ORDER_PREPARING = "order_preparing"
    ORDER_READY = "order_ready"
    ORDER_PICKED_UP = "order_picked_up"
    ORDER_DELIVERED = "order_delivered"
    ORDER_CANCELLED = "order_cancelled"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_FAILED = "payment_failed"
    DELIVERY_ASSIGNED = "delivery_assigned"
    DELIVERY_COMPLETED = "delivery_completed"
    NOTIFICATION_SEND = "notification_send"


@dataclass
class Job:
    """A unit of background work taken from the job queue."""

    id: str
    type: str
    data: Any = None
    retry_count: int = 0
    max_retries: int = 0


@dataclass
class JobData:
    """The identifiers and payload a job carries."""

    order_id: Optional[uuid.UUID] = None
    payment_id: Optional[uuid.UUID] = None
    delivery_id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None
    notification_data: Optional[dict[str, Any]] = None


class JobDataError(ValueError):
    """Raised when a job's data cannot be understood."""


# Keys of an encoded payload are matched to fields without regard to case.
_ENCODED_UUID_KEYS = {
    "orderid": "order_id",
    "paymentid": "payment_id",
    "deliveryid": "delivery_id",
    "userid": "user_id",
}
_ENCODED_NOTIFICATION_KEY = "notificationdata"
_MAPPING_UUID_KEYS = ("order_id", "payment_id", "delivery_id", "user_id")


def _parse_uuid(value: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as exc:
        raise JobDataError(f"invalid UUID {value!r}") from exc


def _from_encoded(raw: str | bytes) -> JobData:
    try:
        payload = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as exc:
        raise JobDataError(f"invalid job data: {exc}") from exc
    job_data = JobData()
    if payload is None:
        return job_data
    if not isinstance(payload, dict):
        raise JobDataError(f"job data must be an object, not {type(payload).__name__}")
    for key, value in payload.items():
        folded = key.lower()
        if folded in _ENCODED_UUID_KEYS:
            if value is None:
                continue
            if not isinstance(value, str):
                raise JobDataError(f"{key} must be a string")
            setattr(job_data, _ENCODED_UUID_KEYS[folded], _parse_uuid(value))
        elif folded == _ENCODED_NOTIFICATION_KEY:
            if value is None:
                continue
            if not isinstance(value, dict):
                raise JobDataError(f"{key} must be an object")
            job_data.notification_data = value
    return job_data


def _from_mapping(payload: dict[str, Any]) -> JobData:
    job_data = JobData()
    for key in _MAPPING_UUID_KEYS:
        value = payload.get(key)
        if isinstance(value, str):
            setattr(job_data, key, _parse_uuid(value))
    notification_data = payload.get("notification_data")
    if isinstance(notification_data, dict):
        job_data.notification_data = notification_data
    return job_data


def parse_job_data(data: Any) -> JobData:
    """Read a job's data from JSON text, JSON bytes or a mapping."""
    if isinstance(data, (str, bytes, bytearray)):
        return _from_encoded(bytes(data) if isinstance(data, bytearray) else data)
    if isinstance(data, dict):
        return _from_mapping(data)
    raise JobDataError(f"unsupported job data type: {type(data).__name__}")


# For each job type: the log message, the identifier it reports, and the level.
_HANDLERS: dict[JobType, tuple[str, str, int]] = {
    JobType.ORDER_CREATED: ("Order created job", "order_id", logging.INFO),
    JobType.ORDER_CONFIRMED: ("Order confirmed job", "order_id", logging.INFO),
    JobType.ORDER_PREPARING: ("Order preparing job", "order_id", logging.INFO),
    JobType.ORDER_READY: ("Order ready job", "order_id", logging.INFO),
    JobType.ORDER_PICKED_UP: ("Order picked up job", "order_id", logging.INFO),
    JobType.ORDER_DELIVERED: ("Order delivered job", "order_id", logging.INFO),
    JobType.ORDER_CANCELLED: ("Order cancelled job", "order_id", logging.INFO),
    JobType.PAYMENT_RECEIVED: ("Payment received job", "payment_id", logging.INFO),
    JobType.PAYMENT_FAILED: ("Payment failed job", "payment_id", logging.WARNING),
    JobType.DELIVERY_ASSIGNED: ("Delivery assigned job", "delivery_id", logging.INFO),
    JobType.DELIVERY_COMPLETED: ("Delivery completed job", "delivery_id", logging.INFO),
    JobType.NOTIFICATION_SEND: ("Notification send job", "user_id", logging.INFO),
}


class WorkerService:
    """A pool of worker threads that take jobs from a queue and handle them."""

    retry_delay_unit = 1.0

    def __init__(
        self,
        job_queue: "queue.Queue[Job]",
        logger: Optional[logging.Logger] = None,
        workers: int = DEFAULT_WORKERS,
    ) -> None:
        self.job_queue = job_queue
        self.logger = logger if logger is not None else logging.getLogger("hopper.worker")
        self.workers = workers if workers > 0 else DEFAULT_WORKERS
        self._stop = threading.Event()

    def _log(self, level: int, message: str, **fields: Any) -> None:
        if fields:
            message = message + " " + " ".join(f"{k}={v}" for k, v in fields.items())
        self.logger.log(level, message)

    def run(self, stop: threading.Event) -> None:
        """Run the worker pool until ``stop`` is set."""
        self._stop = stop
        self._log(logging.INFO, "Worker pool started", workers=self.workers)
        threads = [
            threading.Thread(target=self._work, args=(stop,), daemon=True)
            for _ in range(self.workers)
        ]
        for thread in threads:
            thread.start()
        stop.wait()
        for thread in threads:
            thread.join()
        self._log(logging.INFO, "Worker pool stopped")

    def _work(self, stop: threading.Event) -> None:
        while not stop.is_set():
            try:
                job = self.job_queue.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            try:
                self.process_job(job)
            finally:
                self.job_queue.task_done()

    def process_job(self, job: Job) -> bool:
        """Handle one job; return False if it failed and was retried or dropped."""
        self._log(logging.INFO, "Processing job", job_id=job.id, job_type=job.type)
        try:
            job_type = JobType(job.type)
        except ValueError:
            self._log(logging.WARNING, "Unknown job type", job_type=job.type)
        else:
            try:
                self._handle(job_type, job)
            except JobDataError as exc:
                self._log(logging.ERROR, "Error processing job", job_id=job.id, error=exc)
                self._handle_job_error(job)
                return False
        self._log(logging.INFO, "Successfully processed job", job_id=job.id)
        return True

    def _handle(self, job_type: JobType, job: Job) -> None:
        try:
            data = parse_job_data(job.data)
        except JobDataError as exc:
            raise JobDataError(f"failed to parse job data: {exc}") from exc
        message, field_name, level = _HANDLERS[job_type]
        self._log(level, message, **{field_name: getattr(data, field_name)})

    def _handle_job_error(self, job: Job) -> None:
        max_retries = job.max_retries or DEFAULT_MAX_RETRIES
        if job.retry_count >= max_retries:
            self._log(
                logging.ERROR,
                "Job failed after max retries",
                job_id=job.id,
                max_retries=max_retries,
            )
            return

        retry = replace(job, retry_count=job.retry_count + 1, max_retries=max_retries)
        delay = retry.retry_count * self.retry_delay_unit
        self._log(
            logging.INFO,
            "Retrying job",
            job_id=retry.id,
            retry_count=retry.retry_count,
            max_retries=max_retries,
            retry_delay=delay,
        )
        stop = self._stop

        def requeue() -> None:
            if stop.wait(delay):
                self._log(logging.INFO, "Retry cancelled for job", job_id=retry.id)
            else:
                self.job_queue.put(retry)

        threading.Thread(target=requeue, daemon=True).start()
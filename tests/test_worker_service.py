import json
import logging
import queue
import threading
import time
import uuid

import pytest

from hopper.worker.service import (
    Job,
    JobData,
    JobDataError,
    JobType,
    WorkerService,
    parse_job_data,
)

ORDER_ID = uuid.UUID("11111111-2222-3333-4444-555555555555")
USER_ID = uuid.UUID("aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee")


class _Collector(logging.Handler):
    def __init__(self):
        super().__init__()
        self.messages = []

    def emit(self, record):
        self.messages.append((record.levelno, record.getMessage()))


@pytest.fixture
def collected():
    logger = logging.getLogger(f"test.worker.{uuid.uuid4()}")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    handler = _Collector()
    logger.addHandler(handler)
    return logger, handler


def _service(collected, workers=2):
    logger, handler = collected
    service = WorkerService(queue.Queue(), logger, workers)
    service.retry_delay_unit = 0.01
    return service, handler


def test_parse_mapping_reads_identifiers():
    data = parse_job_data(
        {"order_id": str(ORDER_ID), "user_id": str(USER_ID), "notification_data": {"a": 1}}
    )
    assert data == JobData(order_id=ORDER_ID, user_id=USER_ID, notification_data={"a": 1})


def test_parse_mapping_ignores_non_string_ids():
    data = parse_job_data({"order_id": 7, "notification_data": "nope"})
    assert data == JobData()


def test_parse_mapping_invalid_uuid_raises():
    with pytest.raises(JobDataError):
        parse_job_data({"payment_id": "not-a-uuid"})


def test_parse_json_text_matches_field_names_case_insensitively():
    text = json.dumps({"OrderID": str(ORDER_ID), "deliveryid": str(USER_ID)})
    data = parse_job_data(text)
    assert data.order_id == ORDER_ID
    assert data.delivery_id == USER_ID
    assert data.payment_id is None


def test_parse_json_bytes_round_trip():
    raw = json.dumps({"UserID": str(USER_ID), "NotificationData": {"k": "v"}}).encode()
    data = parse_job_data(raw)
    assert data.user_id == USER_ID
    assert data.notification_data == {"k": "v"}


def test_parse_json_snake_case_key_is_not_a_field():
    data = parse_job_data(json.dumps({"order_id": str(ORDER_ID)}))
    assert data.order_id is None


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", json.dumps({"OrderID": 5})])
def test_parse_bad_json_raises(raw):
    with pytest.raises(JobDataError):
        parse_job_data(raw)


@pytest.mark.parametrize("data", [42, None, 3.5, ["x"]])
def test_parse_unsupported_type_raises(data):
    with pytest.raises(JobDataError, match="unsupported job data type"):
        parse_job_data(data)


def test_job_type_values():
    assert JobType("order_created") is JobType.ORDER_CREATED
    assert JobType.NOTIFICATION_SEND.value == "notification_send"
    assert len(JobType) == 12


def test_workers_default_when_not_positive(collected):
    service = WorkerService(queue.Queue(), collected[0], 0)
    assert service.workers == 5


def test_process_job_success(collected):
    service, handler = _service(collected)
    job = Job(id="job-1", type="order_created", data={"order_id": str(ORDER_ID)})
    assert service.process_job(job) is True
    messages = [m for _, m in handler.messages]
    assert f"Order created job order_id={ORDER_ID}" in messages
    assert "Successfully processed job job_id=job-1" in messages


def test_payment_failed_logs_warning(collected):
    service, handler = _service(collected)
    assert service.process_job(Job(id="p", type="payment_failed", data={})) is True
    assert (logging.WARNING, "Payment failed job payment_id=None") in handler.messages


def test_unknown_job_type_is_warned_and_succeeds(collected):
    service, handler = _service(collected)
    assert service.process_job(Job(id="u", type="mystery", data=42)) is True
    assert (logging.WARNING, "Unknown job type job_type=mystery") in handler.messages
    assert service.job_queue.empty()


def test_failed_job_is_requeued_with_retry_count(collected):
    service, _ = _service(collected)
    job = Job(id="bad", type="order_ready", data=42)
    assert service.process_job(job) is False
    retried = service.job_queue.get(timeout=2)
    assert retried.id == "bad"
    assert retried.retry_count == 1
    assert retried.max_retries == 3
    assert job.retry_count == 0


def test_failed_job_after_max_retries_is_dropped(collected):
    service, handler = _service(collected)
    job = Job(id="done", type="order_ready", data=42, retry_count=2, max_retries=2)
    assert service.process_job(job) is False
    time.sleep(0.1)
    assert service.job_queue.empty()
    assert (
        logging.ERROR,
        "Job failed after max retries job_id=done max_retries=2",
    ) in handler.messages


def test_run_processes_queued_jobs_and_stops(collected):
    service, handler = _service(collected)
    for n in range(3):
        service.job_queue.put(Job(id=f"j{n}", type="delivery_assigned", data={}))
    stop = threading.Event()
    runner = threading.Thread(target=service.run, args=(stop,))
    runner.start()
    deadline = time.monotonic() + 5
    wanted = {f"Successfully processed job job_id=j{n}" for n in range(3)}
    while time.monotonic() < deadline:
        if wanted <= {m for _, m in handler.messages}:
            break
        time.sleep(0.01)
    stop.set()
    runner.join(timeout=5)
    messages = [m for _, m in handler.messages]
    assert wanted <= set(messages)
    assert not runner.is_alive()
    assert messages[-1] == "Worker pool stopped"
    assert "Worker pool started workers=2" in messages


def test_retry_cancelled_once_stopped(collected):
    service, handler = _service(collected)
    stop = threading.Event()
    stop.set()
    service.run(stop)
    assert service.process_job(Job(id="late", type="order_ready", data=42)) is False
    time.sleep(0.1)
    assert service.job_queue.empty()
    assert (logging.INFO, "Retry cancelled for job job_id=late") in handler.messages
"""
Tests for registry broker inscription.
"""
import base64
import threading
from unittest.mock import MagicMock

import pytest
import requests

from standards_sdk.inscriber.broker import (
    DEFAULT_BROKER_URL,
    RegistryBrokerClient,
    build_broker_quote_request,
    get_registry_broker_quote,
    inscribe_skill_via_registry_broker,
    inscribe_via_registry_broker,
)
from standards_sdk.inscriber.exceptions import (
    InscriberAPIError,
    InscriberConnectionError,
    InscriptionCancelledError,
    InscriptionFailedError,
    WaitBudgetExhaustedError,
)
from standards_sdk.inscriber.models import (
    BrokerQuoteRequest,
    InscriptionInput,
    InscriptionMode,
    RegistryBrokerOptions,
)

BROKER_URL = "https://broker.example.com/api/v1"
QUOTE_URL = f"{BROKER_URL}/inscribe/content/quote"
JOBS_URL = f"{BROKER_URL}/inscribe/content"
JOB_URL = f"{JOBS_URL}/job-123"

URL_SOURCE = InscriptionInput(type="url", url=" https://example.com/cat.png ")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("REGISTRY_BROKER_URL", "INSCRIBER_INSECURE_HTTP"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def broker():
    return RegistryBrokerClient("secret", base_url=BROKER_URL + "/", poll_interval=0.01)


def url_request():
    return BrokerQuoteRequest(input_type="url", url="https://example.com/cat.png")


class TestBrokerClientConfiguration:
    """Tests for RegistryBrokerClient construction"""

    def test_defaults(self):
        client = RegistryBrokerClient("key")
        assert client.base_url == DEFAULT_BROKER_URL
        assert client.poll_interval == 2.0

    def test_trailing_slash_trimmed(self, broker):
        assert broker.base_url == BROKER_URL

    @pytest.mark.parametrize("api_key", ["", "   ", None])
    def test_api_key_required(self, api_key):
        with pytest.raises(ValueError, match="API key is required"):
            RegistryBrokerClient(api_key)

    def test_base_url_from_env(self, monkeypatch):
        monkeypatch.setenv("REGISTRY_BROKER_URL", "https://env.example.com/v1")
        assert RegistryBrokerClient("key").base_url == "https://env.example.com/v1"

    def test_http_base_url_rejected(self):
        with pytest.raises(ValueError, match="https"):
            RegistryBrokerClient("key", base_url="http://broker.example.com")

    def test_non_positive_poll_interval_uses_default(self):
        assert RegistryBrokerClient("key", poll_interval=0).poll_interval == 2.0


class TestBrokerRequests:
    """Tests for quote, job creation and job lookup"""

    def test_create_quote(self, broker, requests_mock):
        requests_mock.post(QUOTE_URL, json={"quoteId": "q-1", "totalCostHbar": 5.5, "sizeBytes": 2048})

        quote = broker.create_quote(url_request())

        assert quote.quote_id == "q-1"
        assert quote.total_cost_hbar == 5.5
        assert quote.size_bytes == 2048
        sent = requests_mock.last_request
        assert sent.headers["x-api-key"] == "secret"
        assert sent.json() == {"inputType": "url", "mode": "file", "url": "https://example.com/cat.png"}

    def test_unauthorized(self, broker, requests_mock):
        requests_mock.post(QUOTE_URL, status_code=401, text="unauthorized\n")
        with pytest.raises(InscriberAPIError, match="POST /inscribe/content/quote failed with status 401: unauthorized") as exc_info:
            broker.create_quote(url_request())
        assert exc_info.value.status_code == 401

    def test_create_job(self, broker, requests_mock):
        requests_mock.post(JOBS_URL, json={"jobId": "job-123", "status": "pending"})
        job = broker.create_job(url_request())
        assert job.resolved_id == "job-123"
        assert job.status == "pending"

    def test_job_id_falls_back_to_id(self, broker, requests_mock):
        requests_mock.post(JOBS_URL, json={"id": "job-9"})
        assert broker.create_job(url_request()).resolved_id == "job-9"

    def test_get_job(self, broker, requests_mock):
        requests_mock.get(JOB_URL, json={"jobId": "job-123", "status": "completed", "hrl": "hcs://1/0.0.9"})
        job = broker.get_job("job-123")
        assert job.status == "completed"
        assert job.hrl == "hcs://1/0.0.9"

    def test_get_job_requires_id(self, broker):
        with pytest.raises(ValueError):
            broker.get_job(" ")

    def test_lenient_fields(self, broker, requests_mock):
        requests_mock.get(JOB_URL, text='{"status": null, "credits": "lots", "sizeBytes": Infinity, "usdCents": 12.0}')
        job = broker.get_job("job-123")
        assert job.status == ""
        assert job.credits == 0.0
        assert job.size_bytes == 0
        assert job.usd_cents == 12

    def test_invalid_json(self, broker, requests_mock):
        requests_mock.get(JOB_URL, text="<html>")
        with pytest.raises(InscriberAPIError, match="decode registry broker response"):
            broker.get_job("job-123")

    def test_non_object_body(self, broker, requests_mock):
        requests_mock.get(JOB_URL, json=["job-123"])
        with pytest.raises(InscriberAPIError, match="JSON object"):
            broker.get_job("job-123")

    def test_connection_error(self, broker, requests_mock):
        requests_mock.get(JOB_URL, exc=requests.exceptions.ConnectionError("refused"))
        with pytest.raises(InscriberConnectionError, match="refused"):
            broker.get_job("job-123")


class TestBrokerWait:
    """Tests for wait_for_job and inscribe_and_wait"""

    def test_polls_until_completed(self, broker, requests_mock):
        requests_mock.get(JOB_URL, [
            {"json": {"jobId": "job-123", "status": "pending"}},
            {"json": {"jobId": "job-123", "status": "processing"}},
            {"json": {"jobId": "job-123", "status": "Completed", "topicId": "0.0.42"}},
        ])

        job = broker.wait_for_job("job-123", timeout=1)

        assert job.status == "Completed"
        assert job.topic_id == "0.0.42"
        assert requests_mock.call_count == 3

    def test_failed_job(self, broker, requests_mock):
        requests_mock.get(JOB_URL, json={"status": "failed", "error": "content rejected"})
        with pytest.raises(InscriptionFailedError, match="content rejected"):
            broker.wait_for_job("job-123", timeout=1)

    def test_failed_job_default_message(self, broker, requests_mock):
        requests_mock.get(JOB_URL, json={"status": "failed"})
        with pytest.raises(InscriptionFailedError, match="registry broker inscription failed"):
            broker.wait_for_job("job-123", timeout=1)

    def test_timeout_becomes_poll_budget(self, requests_mock):
        broker = RegistryBrokerClient("secret", base_url=BROKER_URL, poll_interval=0.125)
        requests_mock.get(JOB_URL, json={"status": "pending"})
        with pytest.raises(WaitBudgetExhaustedError):
            broker.wait_for_job("job-123", timeout=0.5)
        assert requests_mock.call_count == 4

    def test_api_error_stops_waiting(self, broker, requests_mock):
        requests_mock.get(JOB_URL, status_code=404, text="no such job")
        with pytest.raises(InscriberAPIError, match="404"):
            broker.wait_for_job("job-123", timeout=1)
        assert requests_mock.call_count == 1

    def test_transient_error_retried(self, broker, requests_mock):
        requests_mock.get(JOB_URL, [
            {"exc": requests.exceptions.ReadTimeout},
            {"json": {"status": "completed"}},
        ])
        assert broker.wait_for_job("job-123", timeout=1).status == "completed"

    def test_cancelled(self, broker, requests_mock):
        requests_mock.get(JOB_URL, json={"status": "pending"})
        cancel = MagicMock(spec=threading.Event)
        cancel.is_set.return_value = True
        with pytest.raises(InscriptionCancelledError):
            broker.wait_for_job("job-123", timeout=1, cancel_event=cancel)
        assert requests_mock.call_count == 0

    def test_inscribe_and_wait(self, broker, requests_mock):
        requests_mock.post(JOBS_URL, json={"jobId": "job-123", "status": "pending"})
        requests_mock.get(JOB_URL, json={
            "status": "completed",
            "hrl": "hcs://1/0.0.42",
            "topicId": "0.0.42",
            "network": "testnet",
            "createdAt": "2024-01-01T00:00:00Z",
        })

        result = broker.inscribe_and_wait(url_request(), timeout=1)

        assert result.confirmed is True
        assert result.job_id == "job-123"
        assert result.hrl == "hcs://1/0.0.42"
        assert result.network == "testnet"
        assert result.created_at == "2024-01-01T00:00:00Z"

    def test_inscribe_and_wait_requires_job_id(self, broker, requests_mock):
        requests_mock.post(JOBS_URL, json={"status": "pending"})
        with pytest.raises(InscriberAPIError, match="missing job ID"):
            broker.inscribe_and_wait(url_request())


class TestBuildBrokerQuoteRequest:
    """Tests for build_broker_quote_request"""

    def test_url_input(self):
        request = build_broker_quote_request(URL_SOURCE, RegistryBrokerOptions(tags=["a"], chunk_size=0))
        assert request.to_body() == {
            "inputType": "url",
            "mode": "file",
            "url": "https://example.com/cat.png",
            "tags": ["a"],
        }

    def test_buffer_input(self):
        source = InscriptionInput(type="buffer", buffer=b"hello", file_name=" note.txt ")
        options = RegistryBrokerOptions(
            mode=InscriptionMode.HASHINAL,
            metadata={"name": "n"},
            file_standard=" hcs-1 ",
            chunk_size=512,
        )

        body = build_broker_quote_request(source, options).to_body()

        assert body == {
            "inputType": "base64",
            "mode": "hashinal",
            "base64": base64.b64encode(b"hello").decode("ascii"),
            "fileName": "note.txt",
            "mimeType": "text/plain",
            "metadata": {"name": "n"},
            "fileStandard": "hcs-1",
            "chunkSize": 512,
        }

    def test_file_input(self, tmp_path):
        path = tmp_path / "pic.png"
        path.write_bytes(b"\x89PNG")
        body = build_broker_quote_request(InscriptionInput(type="file", path=str(path)), RegistryBrokerOptions()).to_body()
        assert body["inputType"] == "base64"
        assert body["fileName"] == "pic.png"
        assert body["mimeType"] == "image/png"

    def test_missing_buffer_file_name(self):
        with pytest.raises(ValueError, match="file_name"):
            build_broker_quote_request(InscriptionInput(type="buffer", buffer=b"x"), RegistryBrokerOptions())

    def test_base64_hidden_from_repr(self):
        source = InscriptionInput(type="buffer", buffer=b"secret-bytes", file_name="a.bin")
        request = build_broker_quote_request(source, RegistryBrokerOptions())
        assert request.base64 not in repr(request)


class TestBrokerHelpers:
    """Tests for the one-call broker helpers"""

    def test_quote_uses_ledger_key_first(self, requests_mock):
        requests_mock.post(QUOTE_URL, json={"totalCostHbar": 1.25})
        options = RegistryBrokerOptions(base_url=BROKER_URL, ledger_api_key="ledger", api_key="plain")

        quote = get_registry_broker_quote(URL_SOURCE, options)

        assert quote.total_cost_hbar == 1.25
        assert requests_mock.last_request.headers["x-api-key"] == "ledger"

    def test_api_key_required(self):
        with pytest.raises(ValueError, match="ledger_api_key or api_key"):
            inscribe_via_registry_broker(URL_SOURCE, RegistryBrokerOptions(base_url=BROKER_URL))

    def test_without_waiting(self, requests_mock):
        requests_mock.post(JOBS_URL, json={"id": " job-7 ", "status": "queued"})
        options = RegistryBrokerOptions(base_url=BROKER_URL, api_key="plain", wait_for_confirmation=False)

        result = inscribe_via_registry_broker(URL_SOURCE, options)

        assert result.confirmed is False
        assert result.job_id == "job-7"
        assert result.status == "queued"
        assert not any(r.method == "GET" for r in requests_mock.request_history)

    def test_waits_with_option_interval(self, requests_mock):
        requests_mock.post(JOBS_URL, json={"jobId": "job-123"})
        requests_mock.get(JOB_URL, [
            {"json": {"status": "pending"}},
            {"json": {"status": "completed"}},
        ])
        options = RegistryBrokerOptions(base_url=BROKER_URL, api_key="plain", poll_interval=0.01, wait_timeout=1)

        result = inscribe_via_registry_broker(URL_SOURCE, options)

        assert result.confirmed is True
        assert result.job_id == "job-123"

    def test_skill_inscription_metadata(self, broker, requests_mock):
        requests_mock.post(JOBS_URL, json={"jobId": "job-123"})
        options = RegistryBrokerOptions(metadata={"author": "me"}, wait_for_confirmation=False)

        inscribe_skill_via_registry_broker(URL_SOURCE, options, skill_name=" summarize ", skill_version="1.0.0", client=broker)

        body = requests_mock.last_request.json()
        assert body["mode"] == "bulk-files"
        assert body["metadata"] == {"author": "me", "skillName": "summarize", "skillVersion": "1.0.0", "kind": "skill"}
        assert options.metadata == {"author": "me"}

    def test_skill_keeps_explicit_mode(self, broker, requests_mock):
        requests_mock.post(JOBS_URL, json={"jobId": "job-123"})
        options = RegistryBrokerOptions(mode=InscriptionMode.FILE, wait_for_confirmation=False)
        inscribe_skill_via_registry_broker(URL_SOURCE, options, client=broker)
        assert requests_mock.last_request.json()["mode"] == "file"

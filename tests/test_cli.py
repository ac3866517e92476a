"""Tests for the CredGuard CLI.

Each invocation gets a :class:`CliState` whose transport is a mock, so
commands run end to end without a backend.
"""

import json
import logging

import pytest
from typer.testing import CliRunner

from conftest import (
    ASYNC_ACK,
    CREDENTIAL,
    HEALTH,
    INVALID_VERDICT,
    ISSUED_OUTCOME,
    PREVIEW_OUTCOME,
    VALID_VERDICT,
    ConnectErrorTransport,
    MockTransport,
    status_payload,
)
from credguard import __version__
from credguard.cli.main import app
from credguard.cli.output import render_tables
from credguard.cli.utils import CliState

runner = CliRunner()


@pytest.fixture(autouse=True)
def _restore_logging():
    """configure_logging() binds the runner's stderr; detach it afterwards."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)


def invoke(transport, *args, **kwargs):
    return runner.invoke(
        app,
        ["--log-level", "CRITICAL", "--api-url", "http://credguard.test", *args],
        obj=CliState(transport=transport),
        **kwargs,
    )


@pytest.fixture
def transport():
    return MockTransport()


class TestGlobalOptions:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"credguard version {__version__}" in result.output

    def test_api_url_applied(self, transport):
        transport.add_response(200, json_data=HEALTH)
        result = invoke(transport, "health")
        assert result.exit_code == 0
        assert str(transport.requests[0].url) == "http://credguard.test/health"


class TestHealth:
    def test_healthy(self, transport):
        transport.add_response(200, json_data=HEALTH)
        result = invoke(transport, "health")
        assert result.exit_code == 0
        assert json.loads(result.stdout) == HEALTH

    def test_unhealthy(self, transport):
        transport.add_response(200, json_data={**HEALTH, "status": "DOWN"})
        result = invoke(transport, "health")
        assert result.exit_code == 1

    def test_unreachable(self):
        result = invoke(ConnectErrorTransport(), "health")
        assert result.exit_code == 3
        assert "TRANSPORT_ERROR" in result.output


class TestVerify:
    def test_verify_file(self, transport, tmp_path):
        path = tmp_path / "credential.json"
        path.write_text(json.dumps(CREDENTIAL))
        transport.add_response(200, json_data=VALID_VERDICT)

        result = invoke(transport, "verify", str(path))

        assert result.exit_code == 0
        output = json.loads(result.stdout)
        assert output["valid"] is True
        assert output["issuerTrusted"] is True
        assert transport.requests[0].url.path == "/api/credentials/upload"

    def test_verify_rejected_credential(self, transport, tmp_path):
        path = tmp_path / "credential.json"
        path.write_text("{}")
        transport.add_response(400, json_data=INVALID_VERDICT)

        result = invoke(transport, "verify", str(path))

        assert result.exit_code == 1
        assert "Issuer is not trusted; Signature verification failed" in result.output
        assert "REMOTE_ERROR" in result.output

    def test_verify_missing_file(self, transport, tmp_path):
        result = invoke(transport, "verify", str(tmp_path / "absent.pdf"))
        assert result.exit_code == 3
        assert transport.requests == []

    def test_verify_json_from_stdin(self, transport):
        transport.add_response(200, json_data=VALID_VERDICT)

        result = invoke(transport, "verify-json", "-", input=json.dumps(CREDENTIAL))

        assert result.exit_code == 0
        body = json.loads(transport.requests[0].content)
        assert body["issuer"]["displayName"] == "Example University"

    def test_verify_json_invalid_json(self, transport):
        result = invoke(transport, "verify-json", "-", input="{not json")
        assert result.exit_code == 2
        assert "INVALID_JSON" in result.output

    def test_verify_json_invalid_credential(self, transport):
        result = invoke(transport, "verify-json", "-", input='{"id": "x"}')
        assert result.exit_code == 2
        assert "INVALID_CREDENTIAL" in result.output
        assert transport.requests == []

    def test_verify_table_lists_errors(self, transport, tmp_path):
        path = tmp_path / "credential.json"
        path.write_text(json.dumps(CREDENTIAL))
        transport.add_response(200, json_data=INVALID_VERDICT)

        result = invoke(transport, "verify", str(path), "--format", "table")

        assert result.exit_code == 1
        assert "Verification" in result.stdout
        assert "Issuer is not trusted" in result.stdout
        assert "Signature verification failed" in result.stdout


class TestIssue:
    def test_issue_sync(self, transport, pdf_file):
        transport.add_response(200, json_data=ISSUED_OUTCOME)

        result = invoke(
            transport, "issue", str(pdf_file), "--type", "PASSPORT", "--wallet", "did:example:123"
        )

        assert result.exit_code == 0
        output = json.loads(result.stdout)
        assert output["document"]["status"] == "Credential Issued"
        assert output["issuance"]["offerUrl"] == "https://wallet.example/offer?c_i=abc"

    def test_issue_table_sections(self, transport, pdf_file):
        transport.add_response(200, json_data=ISSUED_OUTCOME)

        result = invoke(
            transport, "issue", str(pdf_file), "-t", "PASSPORT", "-w", "did:example:123", "-f", "table"
        )

        assert result.exit_code == 0
        assert "Issuance: document" in result.stdout
        assert "Issuance: issuance" in result.stdout
        assert "exch-7" in result.stdout
        assert "Alice Example" in result.stdout

    def test_issue_preview(self, transport, pdf_file):
        transport.add_response(200, json_data=PREVIEW_OUTCOME)

        result = invoke(
            transport, "issue", str(pdf_file), "-t", "passport", "-w", "did:example:123", "--preview"
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout)["issuance"] is None
        assert b'name="previewOnly"\r\n\r\ntrue' in transport.requests[0].content

    def test_issue_missing_wallet(self, transport, pdf_file):
        result = invoke(
            transport,
            "issue",
            str(pdf_file),
            "--type",
            "PASSPORT",
            env={"CREDGUARD_WALLET_DID": None},
        )
        assert result.exit_code == 2
        assert "MISSING_WALLET_ID" in result.output
        assert transport.requests == []

    def test_preview_and_async_conflict(self, transport, pdf_file):
        result = invoke(
            transport, "issue", str(pdf_file), "-t", "PASSPORT", "-w", "did:example:1", "--preview", "--async"
        )
        assert result.exit_code == 2

    def test_issue_async_polls_to_completion(self, transport, pdf_file):
        transport.add_response(200, text=ASYNC_ACK)
        transport.add_response(200, json_data=status_payload("offer_sent"))
        transport.add_response(200, json_data=status_payload("issued"))

        result = invoke(
            transport,
            "issue",
            str(pdf_file),
            "-t",
            "PASSPORT",
            "-w",
            "did:example:123",
            "--async",
            "--poll-interval",
            "0",
        )

        assert result.exit_code == 0
        output = json.loads(result.stdout)
        assert output["jobId"] == "job-1718000000000"
        assert output["jobState"] == "Completed"
        assert output["status"]["status"] == "issued"

    def test_issue_async_failed_exchange(self, transport, pdf_file):
        transport.add_response(200, text=ASYNC_ACK)
        transport.add_response(200, json_data=status_payload("failed", message="Wallet rejected credential"))

        result = invoke(
            transport,
            "issue",
            str(pdf_file),
            "-t",
            "PASSPORT",
            "-w",
            "did:example:123",
            "--async",
            "--poll-interval",
            "0",
        )

        assert result.exit_code == 1
        assert "Wallet rejected credential" in result.output
        assert "job-1718000000000" in result.output

    def test_issue_async_times_out(self, transport, pdf_file):
        transport.add_response(200, text=ASYNC_ACK)
        transport.add_response(200, json_data=status_payload("offer_sent"))

        result = invoke(
            transport,
            "issue",
            str(pdf_file),
            "-t",
            "PASSPORT",
            "-w",
            "did:example:123",
            "--async",
            "--poll-interval",
            "0",
            "--max-attempts",
            "1",
        )

        assert result.exit_code == 1
        assert "POLLING_TIMEOUT" in result.output


class TestExchangeCommands:
    def test_status(self, transport):
        transport.add_response(200, json_data=status_payload("credential_acked"))
        result = invoke(transport, "status", "job-1")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["active"] is True

    def test_status_table(self, transport):
        transport.add_response(200, json_data=status_payload("credential_acked"))
        result = invoke(transport, "status", "job-1", "--format", "table")
        assert result.exit_code == 0
        assert "credential_acked" in result.output

    def test_revoke(self, transport):
        transport.add_response(200, text="Credential revoked successfully")
        result = invoke(transport, "revoke", "cred-77")
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"credentialId": "cred-77", "revoked": True}

    def test_revoke_not_found(self, transport):
        transport.add_response(404, text="")
        result = invoke(transport, "revoke", "cred-missing")
        assert result.exit_code == 1
        assert "HTTP error! status: 404" in result.output

    def test_connection(self, transport):
        transport.add_response(200, text="Connection status: active")
        result = invoke(transport, "connection", "conn-9")
        assert result.exit_code == 0
        assert json.loads(result.stdout)["status"] == "Connection status: active"


class TestTableRendering:
    def test_outcome_split_into_sections(self):
        tables = render_tables(ISSUED_OUTCOME, "Issuance")
        assert [t.title for t in tables] == [
            "Issuance",
            "Issuance: document",
            "Issuance: document: extractedAttributes",
            "Issuance: credential",
            "Issuance: credential: credentialSubject",
            "Issuance: issuance",
        ]

    def test_scalar_lists_stay_in_field_table(self):
        tables = render_tables(INVALID_VERDICT, "Verification")
        assert len(tables) == 1
        assert tables[0].row_count == len(INVALID_VERDICT)

    def test_empty_sections_skipped(self):
        tables = render_tables({"jobId": "job-1", "status": {}}, "Issuance job")
        assert [t.title for t in tables] == ["Issuance job"]

    def test_list_of_objects_numbered(self):
        tables = render_tables({"items": [{"id": "a"}, {"id": "b"}]})
        assert [t.title for t in tables] == ["items #1", "items #2"]

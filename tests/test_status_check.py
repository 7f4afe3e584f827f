from __future__ import annotations

import allure
import httpx

from capture_task_manager.archive.status_check import (
    PERMISSIONS_ERROR,
    IngestStatusChecker,
    IngestStep,
    count_completed_steps,
    parse_step_status,
    transaction_id,
)

pytestmark = [
    allure.epic("Archive Upload"),
    allure.feature("Ingest Status"),
]

STATUS_XML = """<?xml version="1.0"?>
<myemsl>
  <transaction id="2716341"/>
  <step id="0" message="completed" status="SUCCESS"/>
  <step id="1" message="completed" status="SUCCESS"/>
  <step id="2" message="completed" status="SUCCESS"/>
  <step id="3" message="verified" status="SUCCESS"/>
  <step id="4" message="completed" status="SUCCESS"/>
  <step id="5" message="UNKNOWN" status="UNKNOWN"/>
</myemsl>
"""


def test_completed_and_verified_steps_are_complete() -> None:
    stored = parse_step_status(STATUS_XML, IngestStep.STORED)
    verified = parse_step_status(STATUS_XML, IngestStep.VERIFIED)

    assert stored.complete
    assert stored.status_message == "Step Stored is complete"
    assert verified.complete
    assert verified.status_message == "Data is verified, step Verified"


def test_unknown_status_is_pending() -> None:
    status = parse_step_status(STATUS_XML, IngestStep.AVAILABLE)

    assert not status.complete
    assert status.status_message == "Waiting on step Available"
    assert status.error_message == ""


def test_missing_step_is_reported() -> None:
    status = parse_step_status(STATUS_XML, IngestStep.ARCHIVED)

    assert not status.complete
    assert status.status_message == "Match not found for step Archived"


def test_permission_error_is_flagged() -> None:
    xml_text = (
        '<myemsl><transaction id="1"/>'
        '<step id="1" status="ERROR" message="jdoe do not have upload permissions to proposal 7"/>'
        "</myemsl>"
    )

    status = parse_step_status(xml_text, IngestStep.RECEIVED)

    assert status.permission_denied
    assert status.status_message == PERMISSIONS_ERROR
    assert status.error_message.startswith(PERMISSIONS_ERROR)


def test_ingest_error_keeps_message() -> None:
    xml_text = (
        '<myemsl><transaction id="1"/>'
        '<step id="2" status="error" message="checksum mismatch"/></myemsl>'
    )

    status = parse_step_status(xml_text, IngestStep.PROCESSING)

    assert not status.permission_denied
    assert status.status_message == "Ingest error"
    assert status.error_message == "checksum mismatch"


def test_malformed_xml_and_missing_transaction() -> None:
    assert parse_step_status("<myemsl>", IngestStep.SUBMITTED).status_message == "Status XML error"
    assert (
        parse_step_status("<myemsl/>", IngestStep.SUBMITTED).error_message
        == "transaction element not found in the status XML"
    )


def test_entity_declarations_are_refused() -> None:
    xml_text = (
        '<!DOCTYPE myemsl [<!ENTITY done "completed">]>'
        '<myemsl><transaction id="1"/><step id="0" status="success" message="&done;"/></myemsl>'
    )

    status = parse_step_status(xml_text, IngestStep.SUBMITTED)

    assert not status.complete
    assert status.status_message == "Status XML error"
    assert count_completed_steps(xml_text) == 0
    assert transaction_id(xml_text) == 0


def test_empty_attribute_is_an_error() -> None:
    xml_text = '<myemsl><transaction id="1"/><step id="0" status="success" message=""/></myemsl>'

    status = parse_step_status(xml_text, IngestStep.SUBMITTED)

    assert not status.complete
    assert status.error_message.startswith("message attribute")


def test_count_completed_steps_and_transaction_id() -> None:
    assert count_completed_steps(STATUS_XML) == 5
    assert count_completed_steps("not xml") == 0
    assert transaction_id(STATUS_XML) == 2716341
    assert transaction_id("<myemsl/>") == 0


def test_checker_fetches_xml_status_document() -> None:
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return httpx.Response(200, text=STATUS_XML)

    with IngestStatusChecker(transport=httpx.MockTransport(handler)) as checker:
        status = checker.check("https://ingest.example/status/2716341", IngestStep.STORED)

    assert requested == ["https://ingest.example/status/2716341/xml"]
    assert status.complete


def test_checker_reports_http_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    with IngestStatusChecker(transport=httpx.MockTransport(handler)) as checker:
        status = checker.check("https://ingest.example/status/1/xml")

    assert not status.complete
    assert status.step == IngestStep.ARCHIVED
    assert status.error_message == "HTTP 503"


def test_checker_reports_timeouts() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with IngestStatusChecker(transport=httpx.MockTransport(handler)) as checker:
        xml_text, error = checker.fetch_status_xml("https://ingest.example/status/1")

    assert xml_text == ""
    assert error == "timeout"

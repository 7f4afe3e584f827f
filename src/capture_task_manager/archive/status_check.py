"""Archive ingest status checks against the status XML returned by the archive service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

import httpx
from defusedxml import DefusedXmlException, ElementTree

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0
DEFAULT_MAX_RETRIES = 3
UPLOAD_PERMISSION_ERROR = "do not have upload permissions"
PERMISSIONS_ERROR = "Permissions error:"


class IngestStep(int, Enum):
    """Ingest pipeline steps, by the ``id`` attribute of ``<step>`` elements."""

    SUBMITTED = 0
    RECEIVED = 1
    PROCESSING = 2
    VERIFIED = 3
    STORED = 4
    AVAILABLE = 5
    ARCHIVED = 6


@dataclass(slots=True)
class IngestStepStatus:
    """Whether one ingest step finished, with operator-facing messages."""

    step: IngestStep
    complete: bool
    status_message: str
    error_message: str = ""
    permission_denied: bool = False


def parse_step_status(xml_text: str, step: IngestStep) -> IngestStepStatus:
    """Evaluate one step of the status XML.

    A step is complete when its status is ``success`` and its message is
    ``completed`` or ``verified``. An ``unknown`` status means the step is still
    pending; an ``error`` status mentioning upload permissions is reported as
    ``permission_denied``.
    """

    description = step.name.title()
    try:
        root = ElementTree.fromstring(xml_text)
    except (ElementTree.ParseError, DefusedXmlException) as error:
        return IngestStepStatus(
            step=step,
            complete=False,
            status_message="Status XML error",
            error_message=f"Unable to parse the status XML: {error}",
        )

    if root.find(".//transaction") is None:
        message = "transaction element not found in the status XML"
        return IngestStepStatus(
            step=step,
            complete=False,
            status_message=message,
            error_message=message,
        )

    element = root.find(f".//step[@id='{step.value}']")
    if element is None:
        return IngestStepStatus(
            step=step,
            complete=False,
            status_message=f"Match not found for step {description}",
            error_message=f"Match not found for step {description} in the status XML",
        )

    message = element.get("message", "")
    status = element.get("status", "").lower()
    if not message or not status:
        attribute = "message" if not message else "status"
        return IngestStepStatus(
            step=step,
            complete=False,
            status_message="Status XML error",
            error_message=(
                f"{attribute} attribute in the status XML is empty for step {description}"
            ),
        )

    if status == "error":
        if UPLOAD_PERMISSION_ERROR in message:
            return IngestStepStatus(
                step=step,
                complete=False,
                status_message=PERMISSIONS_ERROR,
                error_message=f"{PERMISSIONS_ERROR} {message}",
                permission_denied=True,
            )
        return IngestStepStatus(
            step=step,
            complete=False,
            status_message="Ingest error",
            error_message=message,
        )

    if status == "success":
        if message.lower() == "completed":
            return IngestStepStatus(
                step=step,
                complete=True,
                status_message=f"Step {description} is complete",
            )
        if message.lower() == "verified":
            return IngestStepStatus(
                step=step,
                complete=True,
                status_message=f"Data is verified, step {description}",
            )
        return IngestStepStatus(
            step=step,
            complete=False,
            status_message=f"Step {description}: {message}",
        )

    if status == "unknown":
        return IngestStepStatus(
            step=step,
            complete=False,
            status_message=f"Waiting on step {description}",
        )

    return IngestStepStatus(
        step=step,
        complete=False,
        status_message="Unrecognized status",
        error_message=f"Unrecognized status state for step {description}: {status}",
    )


def count_completed_steps(xml_text: str) -> int:
    try:
        root = ElementTree.fromstring(xml_text)
    except (ElementTree.ParseError, DefusedXmlException):
        return 0
    completed = 0
    for element in root.iter("step"):
        if element.get("status", "").lower() != "success":
            continue
        if element.get("message", "").lower() in {"completed", "verified"}:
            completed += 1
    return completed


def transaction_id(xml_text: str) -> int:
    """Transaction ID in the status XML, 0 if absent."""

    try:
        root = ElementTree.fromstring(xml_text)
    except (ElementTree.ParseError, DefusedXmlException):
        return 0
    element = root.find(".//transaction")
    if element is None:
        return 0
    try:
        return int(element.get("id", "0"))
    except ValueError:
        return 0


class IngestStatusChecker:
    """HTTP client that fetches status XML and evaluates ingest steps."""

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport or httpx.HTTPTransport(retries=max_retries),
            follow_redirects=True,
        )

    def fetch_status_xml(self, status_uri: str) -> tuple[str, str | None]:
        """Return ``(xml_text, error)``; ``error`` is None on success."""

        try:
            response = self._client.get(_xml_status_uri(status_uri))
        except httpx.TimeoutException:
            logger.warning("Timeout fetching ingest status %s", status_uri)
            return "", "timeout"
        except httpx.HTTPError as exc:
            logger.warning("HTTP error fetching ingest status %s: %s", status_uri, exc)
            return "", str(exc)
        if not response.is_success:
            return "", f"HTTP {response.status_code}"
        return response.text, None

    def check(self, status_uri: str, step: IngestStep = IngestStep.ARCHIVED) -> IngestStepStatus:
        xml_text, error = self.fetch_status_xml(status_uri)
        if error is not None:
            return IngestStepStatus(
                step=step,
                complete=False,
                status_message="Unable to retrieve ingest status",
                error_message=error,
            )
        return parse_step_status(xml_text, step)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> IngestStatusChecker:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def _xml_status_uri(status_uri: str) -> str:
    stripped = status_uri.rstrip("/")
    if stripped.endswith("/xml"):
        return stripped
    return f"{stripped}/xml"

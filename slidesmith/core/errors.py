"""Error taxonomy — structured, user-facing failures for transformation runs.

Every failure that aborts a run is described by an ``ErrorDefinition``
(numeric code, category, user message, resolution hint). Failures that are
recovered locally (refinement, images) are logged with the same codes but
never raised past their component.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from slidesmith.core.logging import get_logger

logger = get_logger(__name__)


# ── Categories ──────────────────────────────────────────────────────


class ErrorCategory(str, Enum):
    CONFIGURATION = "Configuration Error"
    UPSTREAM_SOURCE = "Upstream Source Error"
    REFINEMENT = "Refinement Error"
    TEMPLATE = "Template Error"
    VALIDATION = "Input Validation Error"
    SYSTEM = "System Error"
    IMAGE = "Image Error"
    UNKNOWN = "Unknown Error"


class ErrorCode(str, Enum):
    MISSING_AIRTABLE_API_KEY = "MISSING_AIRTABLE_API_KEY"
    MISSING_AI_API_KEYS = "MISSING_AI_API_KEYS"
    MISSING_AIRTABLE_URL = "MISSING_AIRTABLE_URL"
    INVALID_AIRTABLE_URL = "INVALID_AIRTABLE_URL"
    AIRTABLE_AUTHENTICATION_ERROR = "AIRTABLE_AUTHENTICATION_ERROR"
    AIRTABLE_RESOURCE_NOT_FOUND = "AIRTABLE_RESOURCE_NOT_FOUND"
    AIRTABLE_RATE_LIMIT = "AIRTABLE_RATE_LIMIT"
    NO_MATCHING_RECORDS = "NO_MATCHING_RECORDS"
    UPSTREAM_SOURCE_ERROR = "UPSTREAM_SOURCE_ERROR"
    UNSUPPORTED_DATA_SOURCE = "UNSUPPORTED_DATA_SOURCE"
    AI_API_ALL_ATTEMPTS_FAILED = "AI_API_ALL_ATTEMPTS_FAILED"
    MISSING_TEMPLATE_DECK_ID = "MISSING_TEMPLATE_DECK_ID"
    MISSING_FINAL_DECK_ID = "MISSING_FINAL_DECK_ID"
    INVALID_TEMPLATE_DECK = "INVALID_TEMPLATE_DECK"
    INVALID_FINAL_DECK = "INVALID_FINAL_DECK"
    EMPTY_TEMPLATE_DECK = "EMPTY_TEMPLATE_DECK"
    INVALID_LAYOUT = "INVALID_LAYOUT"
    INVALID_PARAMETERS = "INVALID_PARAMETERS"
    SYSTEM_ERROR = "SYSTEM_ERROR"
    IMAGE_PROCESSING_FAILED = "IMAGE_PROCESSING_FAILED"


@dataclass(frozen=True)
class ErrorDefinition:
    code: int
    category: ErrorCategory
    message: str  # Internal, goes to logs
    user_message: str  # Shown to the caller
    resolution: str


ERROR_DEFINITIONS: dict[ErrorCode, ErrorDefinition] = {
    # Configuration
    ErrorCode.MISSING_AIRTABLE_API_KEY: ErrorDefinition(
        101, ErrorCategory.CONFIGURATION,
        "Airtable API key is not configured",
        "The Airtable API key is missing. Please contact the administrator to set up the API key.",
        "Set AIRTABLE_API_KEY in the environment",
    ),
    ErrorCode.MISSING_AI_API_KEYS: ErrorDefinition(
        102, ErrorCategory.CONFIGURATION,
        "No completion service API keys found",
        "AI processing is unavailable due to missing API keys. Please contact the administrator.",
        "Set at least one GEMINI_API_KEY_<n> or LLM_API_KEYS in the environment",
    ),
    # Upstream source
    ErrorCode.MISSING_AIRTABLE_URL: ErrorDefinition(
        201, ErrorCategory.UPSTREAM_SOURCE,
        "Airtable URL is missing",
        "Please provide an Airtable URL to continue.",
        "Enter a valid Airtable URL",
    ),
    ErrorCode.INVALID_AIRTABLE_URL: ErrorDefinition(
        202, ErrorCategory.UPSTREAM_SOURCE,
        "Could not extract Base ID or Table ID from Airtable URL",
        "The Airtable URL format is invalid. Please provide a valid Airtable URL.",
        "Use the URL from your Airtable browser address bar",
    ),
    ErrorCode.AIRTABLE_AUTHENTICATION_ERROR: ErrorDefinition(
        203, ErrorCategory.UPSTREAM_SOURCE,
        "Airtable authentication failed",
        "Could not authenticate with Airtable. The API key may be invalid or expired.",
        "Check and update the Airtable API key",
    ),
    ErrorCode.AIRTABLE_RESOURCE_NOT_FOUND: ErrorDefinition(
        204, ErrorCategory.UPSTREAM_SOURCE,
        "Airtable base or table not found",
        "The specified Airtable base or table could not be found. Please check the URL.",
        "Verify the Airtable URL is correct and accessible",
    ),
    ErrorCode.AIRTABLE_RATE_LIMIT: ErrorDefinition(
        205, ErrorCategory.UPSTREAM_SOURCE,
        "Airtable rate limit exceeded",
        "Too many requests to Airtable. Please try again in a few minutes.",
        "Wait and try again later",
    ),
    ErrorCode.NO_MATCHING_RECORDS: ErrorDefinition(
        206, ErrorCategory.UPSTREAM_SOURCE,
        "No records match the filter criteria",
        "No records matching the filter were found in the data source. Please check your data.",
        "Ensure some records match the configured filter",
    ),
    ErrorCode.UPSTREAM_SOURCE_ERROR: ErrorDefinition(
        208, ErrorCategory.UPSTREAM_SOURCE,
        "Data source request failed",
        "The data source could not be read. Please try again later.",
        "Check the data source availability and connection details",
    ),
    ErrorCode.UNSUPPORTED_DATA_SOURCE: ErrorDefinition(
        209, ErrorCategory.UPSTREAM_SOURCE,
        "Unsupported data source type",
        "The selected data source type is not supported.",
        "Use one of: airtable, raw_text, csv, json, google_sheets",
    ),
    # Refinement
    ErrorCode.AI_API_ALL_ATTEMPTS_FAILED: ErrorDefinition(
        401, ErrorCategory.REFINEMENT,
        "All completion service attempts failed",
        "Could not process content with AI. All API keys have been exhausted or are invalid.",
        "Check and update the completion service API keys or try again later",
    ),
    # Template
    ErrorCode.MISSING_TEMPLATE_DECK_ID: ErrorDefinition(
        501, ErrorCategory.TEMPLATE,
        "Template deck ID is missing",
        "Please select a template slide deck to continue.",
        "Select a template deck",
    ),
    ErrorCode.MISSING_FINAL_DECK_ID: ErrorDefinition(
        502, ErrorCategory.TEMPLATE,
        "Final deck ID is missing",
        "Please provide a location for the final slide deck.",
        "Enter a destination for the generated deck",
    ),
    ErrorCode.INVALID_TEMPLATE_DECK: ErrorDefinition(
        503, ErrorCategory.TEMPLATE,
        "Could not open template slide deck",
        "The template slide deck could not be accessed. Please check the location and permissions.",
        "Ensure the template deck exists and is readable",
    ),
    ErrorCode.INVALID_FINAL_DECK: ErrorDefinition(
        504, ErrorCategory.TEMPLATE,
        "Could not write final slide deck",
        "The final slide deck could not be written. Please check the location and permissions.",
        "Ensure the destination directory exists and is writable",
    ),
    ErrorCode.EMPTY_TEMPLATE_DECK: ErrorDefinition(
        505, ErrorCategory.TEMPLATE,
        "Template deck has no slides",
        "The selected template deck is empty. Please select a template with at least one slide.",
        "Choose a different template or add slides to the current one",
    ),
    # Validation
    ErrorCode.INVALID_LAYOUT: ErrorDefinition(
        602, ErrorCategory.VALIDATION,
        "Invalid layout type",
        "The selected layout is invalid. Please use 'single' or 'double'.",
        "Choose a template with 'single' or 'double' in its name",
    ),
    ErrorCode.INVALID_PARAMETERS: ErrorDefinition(
        604, ErrorCategory.VALIDATION,
        "Request parameters failed validation",
        "Some of the provided parameters are missing or invalid.",
        "Fill in all required fields",
    ),
    # System
    ErrorCode.SYSTEM_ERROR: ErrorDefinition(
        701, ErrorCategory.SYSTEM,
        "Unexpected system error",
        "An unexpected error occurred while generating the deck.",
        "Try again or contact support with the run id",
    ),
    # Image
    ErrorCode.IMAGE_PROCESSING_FAILED: ErrorDefinition(
        801, ErrorCategory.IMAGE,
        "Image could not be resolved",
        "An image could not be loaded and was replaced with an error marker.",
        "Check the image URL, data or identifier in the source record",
    ),
}


# ── Exceptions / payloads ───────────────────────────────────────────


class SlidesmithError(Exception):
    """Raised for failures that abort a transformation run."""

    def __init__(self, code: ErrorCode, details: dict[str, Any] | None = None) -> None:
        self.code = code
        self.definition = ERROR_DEFINITIONS[code]
        self.details = details or {}
        super().__init__(f"[{self.definition.code}] {self.definition.message}")


class ErrorInfo(BaseModel):
    """Structured error payload returned to callers."""

    code: int
    category: str
    message: str
    resolution: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    original_error: str | None = None


def handle_error(
    code: ErrorCode,
    details: dict[str, Any] | None = None,
    original_error: BaseException | None = None,
) -> ErrorInfo:
    """Log an error by code and return its structured payload."""
    definition = ERROR_DEFINITIONS.get(code)
    if definition is None:
        return handle_unknown_error(details, original_error)

    logger.error(
        "error_handled",
        error_code=definition.code,
        error_message=definition.message,
        details=details or {},
        original_error=str(original_error) if original_error else None,
    )
    return ErrorInfo(
        code=definition.code,
        category=definition.category.value,
        message=definition.user_message,
        resolution=definition.resolution,
        details=details or {},
    )


def handle_unknown_error(
    details: dict[str, Any] | None = None,
    original_error: BaseException | None = None,
) -> ErrorInfo:
    """Payload for failures that match no known definition."""
    logger.error("unknown_error", original_error=str(original_error) if original_error else None)
    return ErrorInfo(
        code=999,
        category=ErrorCategory.UNKNOWN.value,
        message="An unexpected error occurred. Please try again or contact support.",
        details=details or {},
        original_error=str(original_error) if original_error else None,
    )


def error_info_from_exception(exc: SlidesmithError) -> ErrorInfo:
    return handle_error(exc.code, exc.details, exc)


def classify_http_status(status_code: int) -> ErrorCode:
    """Map a tabular-source HTTP status onto an error code."""
    if status_code in (401, 403):
        return ErrorCode.AIRTABLE_AUTHENTICATION_ERROR
    if status_code == 404:
        return ErrorCode.AIRTABLE_RESOURCE_NOT_FOUND
    if status_code == 429:
        return ErrorCode.AIRTABLE_RATE_LIMIT
    return ErrorCode.UPSTREAM_SOURCE_ERROR

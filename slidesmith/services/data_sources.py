"""Data ingestion — fetch records from a source and normalise them into items.

Sources:
  airtable                   : Airtable REST API (paginated, filtered)
  raw_text / text / csv / json : text supplied with the request
  google_sheets / sheets / spreadsheet : CSV export of a published sheet

Normalisation turns each record into a flat item: attachment lists collapse
to one URL, other lists to their first element, ``Date Founded`` columns to
the year. Columns recognised as images are collected on the dataset so the
slide pass treats them as images even when their name gives no hint.
"""

from __future__ import annotations

import csv
import io
import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Any
from urllib.parse import quote

import httpx

from slidesmith.config import get_settings
from slidesmith.core.errors import ErrorCode, SlidesmithError, classify_http_status
from slidesmith.core.logging import get_logger
from slidesmith.schemas.transform import DataSourceSpec
from slidesmith.services.field_classifier import is_image_field
from slidesmith.services.field_resolver import to_display_string

logger = get_logger(__name__)

SLIDE_ID_PATTERN = re.compile(r"/d/([a-zA-Z0-9_-]+)")


# ── URL helpers ──


def extract_airtable_ids(url: str | None) -> tuple[str, str] | None:
    """``https://airtable.com/<base>/<table>/<view>`` -> ``(base, table)``."""
    if not url:
        return None
    parts = url.split("?", 1)[0].split("/")
    if len(parts) < 5 or not parts[3] or not parts[4]:
        return None
    return parts[3], parts[4]


def extract_slide_id(url: str | None) -> str | None:
    """Document id from a ``.../d/<id>/...`` URL."""
    if not url:
        return None
    match = SLIDE_ID_PATTERN.search(url)
    return match.group(1) if match else None


# ── Format detection / parsing ──


def detect_data_format(data: str) -> str:
    """``json``, ``csv``, ``tsv`` or ``unknown``."""
    trimmed = data.strip()
    if (trimmed.startswith("{") and trimmed.endswith("}")) or (
        trimmed.startswith("[") and trimmed.endswith("]")
    ):
        try:
            json.loads(trimmed)
            return "json"
        except ValueError:
            pass

    lines = trimmed.split("\n")
    if len(lines) > 1:
        first_commas, second_commas = lines[0].count(","), lines[1].count(",")
        if first_commas > 0 and first_commas == second_commas:
            return "csv"
        first_tabs, second_tabs = lines[0].count("\t"), lines[1].count("\t")
        if first_tabs > 0 and first_tabs == second_tabs:
            return "tsv"
    return "unknown"


def _records_from_json(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, dict):
        for key in ("items", "records", "data"):
            if isinstance(payload.get(key), list):
                return _records_from_json(payload[key])
        return [payload]
    if isinstance(payload, list):
        records = []
        for entry in payload:
            if isinstance(entry, dict):
                # Airtable-shaped records keep their columns under "fields"
                records.append(entry["fields"] if isinstance(entry.get("fields"), dict) else entry)
        return records
    return []


def _records_from_delimited(data: str, delimiter: str) -> list[dict[str, Any]]:
    reader = csv.DictReader(io.StringIO(data.strip()), delimiter=delimiter)
    records = []
    for row in reader:
        record = {(k or "").strip(): (v if v is not None else "") for k, v in row.items() if k}
        if any(str(v).strip() for v in record.values()):
            records.append(record)
    return records


def parse_raw_text(data: str, data_format: str | None = None) -> tuple[list[dict[str, Any]], str]:
    """Parse raw text into records; returns ``(records, detected_format)``."""
    fmt = data_format if data_format in ("json", "csv", "tsv") else detect_data_format(data)
    if fmt == "json":
        try:
            return _records_from_json(json.loads(data)), fmt
        except ValueError as e:
            raise SlidesmithError(ErrorCode.INVALID_PARAMETERS, {"reason": f"invalid JSON: {e}"}) from e
    if fmt == "csv":
        return _records_from_delimited(data, ","), fmt
    if fmt == "tsv":
        return _records_from_delimited(data, "\t"), fmt
    lines = [line.strip() for line in data.splitlines() if line.strip()]
    return [{"content": line} for line in lines], fmt


# ── Normalisation ──


@dataclass
class NormalizedDataset:
    items: list[dict[str, Any]]
    image_fields: set[str] = field(default_factory=set)
    source_type: str = ""
    data_format: str = ""
    raw_text: str = ""  # textual form of the source, used by LLM mapping


def _is_attachment(value: Any) -> bool:
    return isinstance(value, dict) and ("url" in value or "expiring_download_url" in value)


def _year_only(value: Any) -> str:
    if isinstance(value, date):
        return str(value.year)
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)[:4]
    if isinstance(value, str) and len(value) >= 4:
        return value[:4]
    return ""


def normalize_record(record: dict[str, Any], image_fields: set[str]) -> dict[str, Any]:
    """Flatten one record; columns detected as images are added to ``image_fields``."""
    item: dict[str, Any] = {}
    for raw_key, value in record.items():
        key = str(raw_key).strip()
        if is_image_field(key):
            image_fields.add(key)

        if isinstance(value, list):
            if not value:
                value = ""
            elif _is_attachment(value[0]):
                first = value[0]
                if str(first.get("type", "")).startswith("image/"):
                    image_fields.add(key)
                value = first.get("url") or first.get("expiring_download_url") or ""
            else:
                value = to_display_string(value[0])
        elif value is None:
            value = ""

        if "date founded" in key.lower():
            value = _year_only(value)
        item[key] = value
    return item


def normalize_records(
    records: list[dict[str, Any]],
    *,
    source_type: str = "",
    data_format: str = "",
    raw_text: str = "",
) -> NormalizedDataset:
    image_fields: set[str] = set()
    items = [normalize_record(r, image_fields) for r in records]
    return NormalizedDataset(
        items=items,
        image_fields=image_fields,
        source_type=source_type,
        data_format=data_format,
        raw_text=raw_text or json.dumps(items, default=str),
    )


# ── Sources ──


class DataSource(ABC):
    source_type: str = "base"

    def __init__(self, connection_info: dict[str, Any]) -> None:
        self.connection_info = connection_info
        self.data_format = ""
        self.raw_text = ""

    @abstractmethod
    async def fetch(self) -> list[dict[str, Any]]:
        """Return the source's records (column name -> value)."""

    async def load(self) -> NormalizedDataset:
        records = await self.fetch()
        dataset = normalize_records(
            records,
            source_type=self.source_type,
            data_format=self.data_format,
            raw_text=self.raw_text,
        )
        logger.info(
            "data_source_loaded",
            source_type=self.source_type,
            records=len(dataset.items),
            image_fields=sorted(dataset.image_fields),
        )
        return dataset


class RawTextSource(DataSource):
    source_type = "raw_text"

    async def fetch(self) -> list[dict[str, Any]]:
        data = self.connection_info.get("data")
        if not data or not str(data).strip():
            raise SlidesmithError(ErrorCode.INVALID_PARAMETERS, {"reason": "connection_info.data is required"})
        self.raw_text = str(data)
        records, self.data_format = parse_raw_text(self.raw_text, self.connection_info.get("format"))
        return records


class AirtableSource(DataSource):
    source_type = "airtable"

    def __init__(
        self,
        connection_info: dict[str, Any],
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(connection_info)
        self.transport = transport
        self.data_format = "json"

    def _table_ref(self) -> tuple[str, str]:
        info = self.connection_info
        base_id = info.get("base_id")
        table_id = info.get("table_id") or info.get("table_name")
        if base_id and table_id:
            return base_id, table_id

        url = info.get("url")
        if not url:
            raise SlidesmithError(ErrorCode.MISSING_AIRTABLE_URL)
        ids = extract_airtable_ids(url)
        if ids is None:
            raise SlidesmithError(ErrorCode.INVALID_AIRTABLE_URL, {"url": url})
        return ids

    async def fetch(self) -> list[dict[str, Any]]:
        settings = get_settings()
        base_id, table_id = self._table_ref()
        api_key = self.connection_info.get("api_key") or settings.airtable_api_key
        if not api_key:
            raise SlidesmithError(ErrorCode.MISSING_AIRTABLE_API_KEY)

        filter_formula = self.connection_info.get("filter_formula", settings.airtable_ready_filter)
        url = f"{settings.airtable_api_url.rstrip('/')}/{base_id}/{quote(table_id, safe='')}"
        params: dict[str, Any] = {"pageSize": settings.airtable_page_size}
        if filter_formula:
            params["filterByFormula"] = filter_formula

        records: list[dict[str, Any]] = []
        async with httpx.AsyncClient(
            timeout=settings.airtable_timeout_seconds, transport=self.transport
        ) as client:
            while True:
                try:
                    response = await client.get(
                        url, params=params, headers={"Authorization": f"Bearer {api_key}"}
                    )
                except httpx.HTTPError as e:
                    raise SlidesmithError(ErrorCode.UPSTREAM_SOURCE_ERROR, {"reason": str(e)}) from e

                if response.status_code != 200:
                    raise SlidesmithError(
                        classify_http_status(response.status_code),
                        {"status": response.status_code, "body": response.text[:200]},
                    )

                try:
                    payload = response.json()
                except ValueError as e:
                    raise SlidesmithError(
                        ErrorCode.UPSTREAM_SOURCE_ERROR,
                        {"reason": "invalid JSON response", "body": response.text[:200]},
                    ) from e
                records.extend(r.get("fields", {}) for r in payload.get("records", []))
                offset = payload.get("offset")
                if not offset:
                    break
                params["offset"] = offset

        logger.info("airtable_records_fetched", base_id=base_id, table_id=table_id, count=len(records))

        # Same column set on every record, missing cells blank
        headers = sorted({key for record in records for key in record})
        records = [{h: record.get(h, "") for h in headers} for record in records]
        self.raw_text = json.dumps(records, default=str)
        return records


class SheetsCsvSource(DataSource):
    source_type = "google_sheets"

    def __init__(
        self,
        connection_info: dict[str, Any],
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(connection_info)
        self.transport = transport
        self.data_format = "csv"

    async def fetch(self) -> list[dict[str, Any]]:
        settings = get_settings()
        spreadsheet_id = self.connection_info.get("spreadsheet_id") or extract_slide_id(
            self.connection_info.get("url")
        )
        if not spreadsheet_id:
            raise SlidesmithError(ErrorCode.INVALID_PARAMETERS, {"reason": "spreadsheet_id or url is required"})

        url = settings.sheets_export_url_template.format(
            spreadsheet_id=spreadsheet_id,
            sheet_name=quote(self.connection_info.get("sheet_name") or "", safe=""),
        )
        try:
            async with httpx.AsyncClient(
                timeout=settings.sheets_timeout_seconds, transport=self.transport, follow_redirects=True
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            raise SlidesmithError(ErrorCode.UPSTREAM_SOURCE_ERROR, {"reason": str(e)}) from e

        if response.status_code != 200:
            raise SlidesmithError(
                ErrorCode.UPSTREAM_SOURCE_ERROR,
                {"status": response.status_code, "spreadsheet_id": spreadsheet_id},
            )

        self.raw_text = response.text
        return _records_from_delimited(self.raw_text, ",")


SOURCE_TYPES: dict[str, type[DataSource]] = {
    "raw_text": RawTextSource,
    "text": RawTextSource,
    "csv": RawTextSource,
    "json": RawTextSource,
    "google_sheets": SheetsCsvSource,
    "sheets": SheetsCsvSource,
    "spreadsheet": SheetsCsvSource,
    "airtable": AirtableSource,
}


def get_data_source(
    spec: DataSourceSpec,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> DataSource:
    source_type = spec.type.strip().lower()
    source_cls = SOURCE_TYPES.get(source_type)
    if source_cls is None:
        raise SlidesmithError(ErrorCode.UNSUPPORTED_DATA_SOURCE, {"type": spec.type})

    connection_info = dict(spec.connection_info)
    if source_cls is RawTextSource:
        if source_type in ("csv", "json"):
            connection_info.setdefault("format", source_type)
        return RawTextSource(connection_info)
    return source_cls(connection_info, transport=transport)

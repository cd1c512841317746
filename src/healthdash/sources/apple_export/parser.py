"""Parse Apple Health exports (export.zip or export.xml) into normalized samples."""

import io
import logging
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass, field
from datetime import date, tzinfo

from healthdash.engine.normalizer import RawSample, normalize_record, sample_day
from healthdash.errors import ArchiveParseError, MalformedSampleError

logger = logging.getLogger(__name__)

ROOT_ELEMENT = "HealthData"
RECORD_ELEMENT = "Record"

# Localized exports name the file differently
EXPORT_FILENAMES = ("export.xml", "导出.xml")

# Keep the per-record error list readable on multi-gigabyte exports
MAX_REPORTED_ERRORS = 50


@dataclass
class ExportParseResult:
    """Result of parsing an export file."""

    samples: list[RawSample] = field(default_factory=list)
    records_seen: int = 0
    skipped_unknown: int = 0
    malformed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def day_span(self, tz: tzinfo) -> tuple[date, date] | None:
        """First and last calendar day covered by the parsed samples."""
        if not self.samples:
            return None
        days = [sample_day(s, tz) for s in self.samples]
        return min(days), max(days)


def _find_export_member(zf: zipfile.ZipFile) -> str:
    names = [n for n in zf.namelist() if not n.endswith("/")]
    for candidate in EXPORT_FILENAMES:
        for name in names:
            if name.lower().endswith(candidate):
                return name
    xml_names = [n for n in names if n.lower().endswith(".xml") and "cda" not in n.lower()]
    if xml_names:
        return xml_names[0]

    preview = ", ".join(names[:10]) + ("..." if len(names) > 10 else "")
    raise ArchiveParseError(f"No health export XML found in archive. Archive contains: {preview}")


def load_export_xml(data: bytes, filename: str = "") -> bytes:
    """Return the export XML bytes from either a zip archive or raw XML upload."""
    if zipfile.is_zipfile(io.BytesIO(data)):
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as zf:
                member = _find_export_member(zf)
                logger.info("Reading %s from archive %s", member, filename or "<upload>")
                return zf.read(member)
        except zipfile.BadZipFile as e:
            raise ArchiveParseError(f"Corrupt zip archive {filename!r}: {e}") from e
    if filename.lower().endswith(".zip"):
        raise ArchiveParseError(f"{filename!r} is not a valid zip archive")
    return data


def parse_export_xml(xml_bytes: bytes, tz: tzinfo) -> ExportParseResult:
    """Stream ``Record`` elements out of an export document.

    Records of unknown types are counted and skipped; malformed records are
    counted, reported and skipped. Broken markup is fatal for the import.

    Raises:
        ArchiveParseError: The document is not well-formed or is not a
            health export.
    """
    result = ExportParseResult()
    root: ET.Element | None = None

    try:
        for event, elem in ET.iterparse(io.BytesIO(xml_bytes), events=("start", "end")):
            if event == "start":
                if root is None:
                    root = elem
                    if elem.tag != ROOT_ELEMENT:
                        raise ArchiveParseError(
                            f"Unexpected root element <{elem.tag}>, expected <{ROOT_ELEMENT}>"
                        )
                continue
            if elem.tag != RECORD_ELEMENT:
                continue

            result.records_seen += 1
            _handle_record(elem.attrib, tz, result)
            # Records can number in the millions; drop them once processed
            elem.clear()
            root.clear()
    except ET.ParseError as e:
        line, column = e.position
        raise ArchiveParseError(
            f"Malformed export XML at line {line}, column {column}: {e}"
        ) from e

    if root is None:
        raise ArchiveParseError("Export XML contains no elements")

    logger.info(
        "Parsed export: %d records, %d samples, %d unknown, %d malformed",
        result.records_seen,
        len(result.samples),
        result.skipped_unknown,
        result.malformed,
    )
    return result


def _handle_record(attrs: dict[str, str], tz: tzinfo, result: ExportParseResult) -> None:
    type_tag = attrs.get("type", "")
    try:
        sample = normalize_record(
            type_tag,
            attrs.get("value"),
            attrs.get("startDate"),
            attrs.get("endDate"),
            attrs.get("sourceName", ""),
            tz,
            unit=attrs.get("unit"),
        )
    except MalformedSampleError as e:
        result.malformed += 1
        if len(result.errors) < MAX_REPORTED_ERRORS:
            result.errors.append(f"Record {result.records_seen}: {e.reason} ({type_tag})")
        return

    if sample is None:
        result.skipped_unknown += 1
        return
    result.samples.append(sample)


def parse_export(data: bytes, tz: tzinfo, filename: str = "") -> ExportParseResult:
    """Parse an uploaded export (zip or XML) in one step."""
    return parse_export_xml(load_export_xml(data, filename), tz)

from healthdash.sources.apple_export.parser import (
    ExportParseResult,
    load_export_xml,
    parse_export,
    parse_export_xml,
)
from healthdash.sources.apple_export.source import ArchiveSource

__all__ = [
    "ArchiveSource",
    "ExportParseResult",
    "load_export_xml",
    "parse_export",
    "parse_export_xml",
]

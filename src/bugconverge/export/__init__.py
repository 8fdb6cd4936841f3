"""Export modules for fit results."""

from .json_export import JsonExporter
from .report import TextReportWriter
from .table_export import TableExporter

__all__ = ["JsonExporter", "TableExporter", "TextReportWriter"]

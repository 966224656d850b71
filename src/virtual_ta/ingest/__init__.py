"""virtual-ta ingest: content record loading and embedding writer."""

from virtual_ta.ingest.embedding_writer import ContentWriter, WriteResult
from virtual_ta.ingest.records import html_to_text, load_records, parse_records

__all__ = [
    "ContentWriter",
    "WriteResult",
    "html_to_text",
    "load_records",
    "parse_records",
]

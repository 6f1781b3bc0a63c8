"""
PDF Processor

Accepts PDF uploads, stores them on the local filesystem, extracts their
text layer, records authoritative metadata in PostgreSQL and indexes the
text in Elasticsearch for full-text search.
"""

__version__ = "1.0.0"

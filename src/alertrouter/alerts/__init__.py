"""
Alert snapshots and the ingestion boundary that produces them.
"""

from .ingest import AlertIngestor, IngestResult
from .models import Alert, AlertStatus, label_fingerprint

__all__ = ["Alert", "AlertIngestor", "AlertStatus", "IngestResult", "label_fingerprint"]

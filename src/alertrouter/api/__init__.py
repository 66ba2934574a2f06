"""HTTP API: alert ingestion, query interface and silences."""

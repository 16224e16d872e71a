"""Media ingestion gateway over Google Cloud Storage and DigitalOcean Spaces."""

__version__ = "1.0.0"

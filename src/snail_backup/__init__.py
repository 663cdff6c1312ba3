"""snail-backup: snail_backup/__init__.py."""

__version__ = "1.0.0"

# Marker file whose presence means a snapshot transfer has not finished
SENTINEL_NAME = "_job_is_processing_"

# Fixed-width, zero padded: lexical order equals chronological order
TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

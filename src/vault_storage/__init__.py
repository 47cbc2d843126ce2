"""Google Drive asset storage with legacy-backend migration."""

__version__ = "0.1.0"

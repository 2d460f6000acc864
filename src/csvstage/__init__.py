"""csvstage - CSV staging, conflict validation and import for document collections."""

__version__ = "0.1.0"

"""HTTP API for the staging service."""

"""HTTP API - webhook receiver and manual synchronization runs."""

"""HTTP API exposed to the connector."""

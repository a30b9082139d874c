"""HTTP API for the SQL AI engine."""

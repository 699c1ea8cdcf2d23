"""HTTP API: routes, schemas and dependencies."""

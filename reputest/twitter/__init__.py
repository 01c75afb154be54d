"""X API v2 access: credentials, authenticated requests, pagination."""

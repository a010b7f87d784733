"""MediaFlow Engine — Config, errors, caching, request context, logging, events."""

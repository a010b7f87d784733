"""MediaFlow DB — SQLAlchemy models, session management and store implementations."""

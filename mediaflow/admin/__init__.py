"""MediaFlow Admin — Settings service."""

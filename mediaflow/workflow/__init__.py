"""MediaFlow Workflow — System folders, inbox routing, review and approval."""

"""Creative asset review and notification service."""

"""Framework integrations for the webhook receiver."""

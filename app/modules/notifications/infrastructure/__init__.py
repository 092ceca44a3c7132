"""Store, queue and Slack adapters for the delivery engine."""

"""From post text to persisted records and replies."""

"""Rule-based customer care chat with complaint tracking."""

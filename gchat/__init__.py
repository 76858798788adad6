"""Chat with a completion API by editing a plain-text transcript file."""

"""HTTP surface for the Writer AI service."""

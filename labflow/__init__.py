"""Laboratory order result lifecycle and approval service."""

"""Detection, merge and notification pipeline for broken internal links."""

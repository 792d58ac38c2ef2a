"""Multi-attribute utility scoring for decisions."""

"""Processing stages of the consolidation engine."""

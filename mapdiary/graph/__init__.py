"""Graph engine: layout, cascade deletion, summarization and live reconciliation."""

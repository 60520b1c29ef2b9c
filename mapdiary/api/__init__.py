"""HTTP API for MapDiary."""

"""GPX output: one track file per activity."""

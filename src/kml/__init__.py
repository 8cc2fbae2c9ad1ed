"""KML output: activity tracks and starred segments."""

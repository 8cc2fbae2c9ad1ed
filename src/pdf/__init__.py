"""Bikelog output: Acroforms XML field data for a PDF bikelog."""

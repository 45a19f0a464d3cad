# This project was developed with assistance from AI tools.
"""Checklist seeding, document classification and reconciliation."""

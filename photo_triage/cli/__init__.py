"""Command line interface for photo-triage."""

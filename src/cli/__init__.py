"""Command-line interface for exam-drill."""

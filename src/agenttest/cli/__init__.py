"""Command-line interface for the agent test harness."""

"""Agent test harness - define, run, schedule and analyse tests against AI agents."""

__version__ = "0.1.0"

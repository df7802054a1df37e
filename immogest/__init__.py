"""ImmoGest property portal: resilient data access layer."""

__version__ = "1.0.0"

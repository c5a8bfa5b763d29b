"""Nightly build status digest mailer."""

__all__ = [
    "config",
    "models",
    "build_client",
    "report_formatter",
    "mailer",
    "orchestrator",
]

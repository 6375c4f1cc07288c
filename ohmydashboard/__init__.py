"""OhMyDashboard: read-only monitoring backend for OpenCode agent sessions."""

__version__ = "0.1.0"

"""HTTP API for plannercal."""

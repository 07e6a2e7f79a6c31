"""go-workflow: release automation and workflow orchestration."""

__version__ = "2.0.1"

"""Browser evidence harness: sessions, evidence capture and PDF reports for acceptance tests."""

__version__ = "0.1.0"

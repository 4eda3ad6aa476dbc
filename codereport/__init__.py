"""codereport: repo-local ledger of code follow-up reports."""

__version__ = "0.1.0"

"""hostrelay: browser-to-host relay with task reconciliation and live fan-out."""

__version__ = "0.1.0"

"""Allow ``python -m hostrelay``."""

from hostrelay.cli.main import app

app()

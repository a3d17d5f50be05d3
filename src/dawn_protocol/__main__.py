"""Allow running as ``python -m dawn_protocol``."""

from dawn_protocol.cli.main import app

if __name__ == "__main__":
    app()

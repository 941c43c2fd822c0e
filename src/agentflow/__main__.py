"""Allow ``python -m agentflow``."""

from agentflow.cli import app

if __name__ == "__main__":
    app()

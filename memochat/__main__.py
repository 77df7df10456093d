"""
Entry point for running memochat as a module: python -m memochat
"""

from memochat.cli.commands import app

if __name__ == "__main__":
    app()

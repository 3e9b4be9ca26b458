"""Entry point for python -m release_matrix."""

from release_matrix.cli import app

if __name__ == "__main__":
    app()

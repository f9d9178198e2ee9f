"""Entry point for the fsoc CLI application."""

from fsoc.main import cli

if __name__ == "__main__":
    cli()

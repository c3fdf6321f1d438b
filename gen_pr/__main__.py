"""
Main entry point for gen-pr when run as a module.
"""

from dotenv import find_dotenv, load_dotenv

from gen_pr.cli import app, init_tracing
from gen_pr.config import resolve_settings


def main():
    """
    Entry point for the script when run directly
    """
    load_dotenv(find_dotenv(usecwd=True))
    init_tracing(resolve_settings())
    app()


if __name__ == "__main__":
    main()

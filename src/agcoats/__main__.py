"""
Main entry point for the AGCO ATS CLI.

Configures logging and the date locale, then launches the Typer application
defined in cli.py. The CLI itself creates the config store and API clients
per invocation.
"""
import locale
import logging

# --- Logging Setup ---
# Warnings and errors only by default so command output stays clean;
# `agcoats --verbose` switches the root logger to DEBUG.
logging.basicConfig(
    level=logging.WARNING,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

from .cli import app


def setup_locale():
    """Uses the user's locale for dates shown in tables and detail views."""
    try:
        locale.setlocale(locale.LC_TIME, "")
    except locale.Error as e:
        logger.debug(f"Could not apply the user's LC_TIME locale, keeping the default: {e}")


def run():
    """Runs the Typer CLI application."""
    setup_locale()
    app(prog_name="agcoats")


if __name__ == "__main__":
    run()

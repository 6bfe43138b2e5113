"""Command-line client for OpenRouter-compatible chat gateways."""

import logging

__version__ = "0.3.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

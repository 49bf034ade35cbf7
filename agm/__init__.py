"""agm - centralize AI coding agent skills and link them into projects."""

import logging

__version__ = "1.0.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

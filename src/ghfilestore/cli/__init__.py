"""ghfilestore CLI: files in a GitHub repository, through the contents API."""

from ._helpers import main  # noqa: F401 (entry point)

# Import command modules to register Click commands with the main group.
from . import _basic, _archive  # noqa: F401

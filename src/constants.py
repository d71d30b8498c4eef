"""Infrastructure and technical constants."""

from typing import Final

# Technical configuration constants
DEFAULT_PORT: Final = 8000
DEFAULT_AUTOSAVE_DELAY_SECONDS: Final = 1.2

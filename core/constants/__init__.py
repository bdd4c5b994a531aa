"""Shared constants."""

from .sizes import *  # noqa: F401,F403
from .timing import *  # noqa: F401,F403

import sys

from .runtime import _cli

sys.exit(_cli())

""" Report the installed version of ASIDR. """
import sys
from functools import cache
from importlib.metadata import PackageNotFoundError, version
from typing import Sequence

DISTRIBUTION_NAME = 'asidr'
DEVELOPMENT_VERSION = 'development'


@cache
def get_version() -> str:
    """ The installed distribution's version, or 'development' in a source
    tree that was never installed.
    """
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return DEVELOPMENT_VERSION


def main(argv: Sequence[str]) -> int:
    print(get_version())
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))

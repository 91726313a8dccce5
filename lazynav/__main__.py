"""Module entrypoint for ``python -m lazynav``.

Exits with the status returned by ``lazynav.cli.main``.
"""

import sys

from .cli import main


if __name__ == "__main__":
    sys.exit(main())

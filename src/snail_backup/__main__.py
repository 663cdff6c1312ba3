# pyright: standard

"""snail-backup: snail_backup/__main__.py.

Incremental, crash-safe rsync snapshot backups of one job per run.
"""

import sys

from .cli.dispatcher import main

if __name__ == "__main__":
    sys.exit(main())

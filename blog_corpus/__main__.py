from __future__ import annotations

import sys

from .cli import main


def _entrypoint() -> int:
    return main(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(_entrypoint())

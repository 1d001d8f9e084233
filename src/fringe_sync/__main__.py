"""Entry point for fringe_sync."""

from __future__ import annotations

from fringe_sync.cli import main


if __name__ == "__main__":
    raise SystemExit(main())

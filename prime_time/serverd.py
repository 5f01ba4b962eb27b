"""Entry point for the Prime Time server.

Usage:
  python -m prime_time.serverd serve --port 40000
  python -m prime_time.serverd check 7 8 1e3
"""

from __future__ import annotations

from prime_time.server.cli import prime_time_cli


def main() -> None:
    prime_time_cli(standalone_mode=True)


if __name__ == "__main__":
    main()

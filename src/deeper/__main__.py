"""Module entrypoint for `python -m deeper`."""

from __future__ import annotations

from .main import main_entry


def main() -> None:
    """Run the question deck shell."""
    main_entry()


if __name__ == "__main__":  # pragma: no cover
    main()

#!/usr/bin/env python3
"""CLI entry point for bib-librarian command.

Formats, re-keys, de-duplicates and abbreviates BibTeX libraries.
"""

import sys


def main() -> None:
    """Entry point for bib-librarian command."""
    from bib_librarian.librarian import main as librarian_main

    sys.exit(librarian_main())


if __name__ == "__main__":
    main()

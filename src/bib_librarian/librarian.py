"""
librarian: maintain a BibTeX library from the command line.

Each command loads a .bib file into a session, applies one operation and
writes the result back through the source-preserving merger, so comments and
layout between entries are kept.

Examples
--------
$ bib-librarian format refs.bib --in-place
$ bib-librarian rekey refs.bib -o rekeyed.bib
$ bib-librarian dedupe refs.bib
$ bib-librarian abbreviate refs.bib --in-place
$ bib-librarian journal "Physical Review Letters"
$ bib-librarian journal "phys rev lett" --expand
$ bib-librarian fetch 10.1103/PhysRevLett.116.061102 refs.bib
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from bib_librarian.abbreviations import AbbreviationIndex
from bib_librarian.config import default_data_dir, load_config
from bib_librarian.remote import DoiClient
from bib_librarian.session import Session
from bib_librarian.storage import BibParseError

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_WRITE_ERROR = 2


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bib-librarian",
        description="Generate citation keys, find duplicates and normalize journal names in BibTeX files.",
    )
    p.add_argument("--config", help="Key/format config file (YAML)")
    p.add_argument("--data-dir", help="Directory holding journals.json and ltwa.csv")
    p.add_argument("--verbose", action="store_true", help="Verbose logging")
    sub = p.add_subparsers(dest="command", required=True)

    def add_file_command(name: str, help_text: str) -> argparse.ArgumentParser:
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("input", help="Input .bib file")
        out = cmd.add_mutually_exclusive_group()
        out.add_argument("-o", "--output", help="Write the result to this file")
        out.add_argument("--in-place", action="store_true", help="Rewrite the input file")
        return cmd

    add_file_command("format", "Re-format every entry in canonical field order")
    add_file_command("rekey", "Regenerate citation keys from the configured key parts")
    add_file_command("abbreviate", "Abbreviate journal names")
    add_file_command("unabbreviate", "Expand journal abbreviations")

    dedupe = sub.add_parser("dedupe", help="List groups of entries with near-identical titles")
    dedupe.add_argument("input", help="Input .bib file")

    journal = sub.add_parser("journal", help="Abbreviate (or expand) a single journal name")
    journal.add_argument("name", help="Journal name or abbreviation")
    journal.add_argument("--expand", action="store_true", help="Expand an abbreviation instead")

    fetch = sub.add_parser("fetch", help="Resolve a DOI and add the entry to a .bib file")
    fetch.add_argument("doi", help="DOI or doi.org URL")
    fetch.add_argument("input", help="Target .bib file (created if missing)")
    fetch.add_argument("--timeout", type=float, default=20.0, help="HTTP timeout seconds")
    return p


def init_logging(verbose: bool) -> logging.Logger:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    return logging.getLogger("bib_librarian")


def build_session(args: argparse.Namespace) -> Session:
    config = load_config(args.config)
    index = AbbreviationIndex.from_data_dir(args.data_dir or default_data_dir())
    return Session(config=config, index=index, config_path=args.config)


def write_result(session: Session, args: argparse.Namespace, logger: logging.Logger) -> int:
    if not args.output and not args.in_place:
        sys.stdout.write(session.render())
        return EXIT_OK
    target = args.output or args.input
    try:
        session.save(target)
    except OSError as e:
        logger.error("Failed to write %s: %s", target, e)
        return EXIT_WRITE_ERROR
    return EXIT_OK


def print_duplicates(session: Session) -> None:
    groups = session.find_duplicates()
    for n, group in enumerate(groups, start=1):
        print(f"Group {n}: [{group.original.key}] {group.original.title} ({group.original.year})")
        for cand in group.candidates:
            print(f"  - [{cand.info.key}] {cand.info.title} ({cand.info.year}) similarity={cand.similarity:.3f}")


def run_fetch(session: Session, args: argparse.Namespace, logger: logging.Logger) -> int:
    if os.path.exists(args.input):
        session.load_file(args.input)
    try:
        with DoiClient(timeout=args.timeout) as client:
            fetched = client.fetch_by_doi(args.doi)
    except (RuntimeError, ValueError) as e:
        logger.error("Could not fetch %s: %s", args.doi, e)
        return EXIT_INPUT_ERROR
    keys = session.import_fetched(fetched)
    if not keys:
        logger.warning("DOI found, but empty.")
        return EXIT_OK
    try:
        session.save(args.input)
    except OSError as e:
        logger.error("Failed to write %s: %s", args.input, e)
        return EXIT_WRITE_ERROR
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logger = init_logging(args.verbose)
    session = build_session(args)

    if args.command == "journal":
        if args.expand:
            full = session.index.unabbreviate(args.name)
            if full is None:
                logger.error("No expansion known for %r", args.name)
                return EXIT_INPUT_ERROR
            print(full)
        else:
            print(session.index.abbreviate(args.name))
        return EXIT_OK

    try:
        if args.command == "fetch":
            return run_fetch(session, args, logger)
        session.load_file(args.input)
    except (OSError, BibParseError) as e:
        logger.error("Failed to read %s: %s", args.input, e)
        return EXIT_INPUT_ERROR

    if args.command == "dedupe":
        print_duplicates(session)
        return EXIT_OK
    if args.command == "rekey":
        session.regenerate_keys()
    elif args.command == "abbreviate":
        session.abbreviate_all_journals()
    elif args.command == "unabbreviate":
        session.unabbreviate_all_journals()
    return write_result(session, args, logger)


if __name__ == "__main__":
    sys.exit(main())

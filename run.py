import argparse
import logging
import sys
from pathlib import Path

from annotation_import.config import get_vault_dir, load_settings
from annotation_import.core.importer import AnnotationImporter
from annotation_import.core.obsidian import Vault
from annotation_import.integrations.apple_books import AppleBooksStore, LibraryFetchError


def build_importer(args) -> AnnotationImporter:
    settings = load_settings(Path(args.settings) if args.settings else None)
    vault_root = Path(args.vault) if args.vault else get_vault_dir()
    store = AppleBooksStore(Path(args.container) if args.container else None)
    return AnnotationImporter(settings, store, Vault(vault_root, settings))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Import Apple Books highlights into Obsidian")
    parser.add_argument("--vault", help="Obsidian vault directory")
    parser.add_argument("--settings", help="Settings JSON file")
    parser.add_argument("--container", help="Directory holding copies of the Apple Books stores")
    parser.add_argument("-v", "--verbose", action="store_true")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("list", help="List books with highlights")

    import_parser = subparsers.add_parser("import", help="Import highlights")
    import_parser.add_argument("asset_ids", nargs="*", help="Only import these books")

    inspect_parser = subparsers.add_parser("inspect", help="Dump raw annotation rows for a book")
    inspect_parser.add_argument("search", help="Asset id or part of the title")

    serve_parser = subparsers.add_parser("serve", help="Start the book selection server")
    serve_parser.add_argument("--port", type=int, default=8123)

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    if args.command == "serve":
        from annotation_import.web.app import start_server
        print(f"Starting server at http://127.0.0.1:{args.port}")
        start_server(port=args.port)
        return 0

    if args.command == "inspect":
        from annotation_import.scripts.inspect_annotations import inspect_book
        store = AppleBooksStore(Path(args.container) if args.container else None)
        return inspect_book(args.search, store)

    if args.command not in ("list", "import"):
        parser.print_help()
        return 1

    importer = build_importer(args)
    can_access, error = importer.store.check_database_access()
    if not can_access:
        print(f"Error: {error}")
        return 1

    try:
        if args.command == "list":
            listings = importer.list_books()
            if not listings:
                print("No books with highlights found in Apple Books")
            for item in listings:
                print(f"{item.book.asset_id}\t{item.annotation_count:>4}\t{item.book.display_title}")
            return 0

        if args.asset_ids:
            summary = importer.import_selected_books(args.asset_ids)
        else:
            summary = importer.import_all_books()
    except LibraryFetchError as e:
        print(f"Error: Import failed: {e}")
        return 1

    print(summary.message)
    for asset_id, message in summary.failures.items():
        print(f"  {asset_id}: {message}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

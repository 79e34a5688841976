import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from pkgrepo import __version__
from pkgrepo.data.repository import RepositoryBuilder
from pkgrepo.domain.errors import OutputDirectoryConflict, RepositoryWriteError
from pkgrepo.storage.json_store import CONFIG_FILENAME, load_config

logger = logging.getLogger(__name__)


def underprint(text: str) -> None:
    print(f"{text}\n{'-' * len(text.strip())}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pkgrepo",
        description="Build a package repository (repo.json, zips) from a directory of pkgbuild.json packages.",
    )
    parser.add_argument(
        "source",
        nargs="?",
        default=".",
        help="Directory containing the package folders (default: current directory).",
    )
    parser.add_argument(
        "--config",
        help=f"Path to the configuration file (default: <source>/{CONFIG_FILENAME}).",
    )
    parser.add_argument(
        "--output",
        help="Output directory, overriding output_directory from the configuration.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    underprint(f"This is pkgrepo v{__version__}.")

    source_dir = Path(args.source).expanduser().resolve()
    config_path = Path(args.config) if args.config else source_dir / CONFIG_FILENAME
    config = load_config(config_path)
    if args.output:
        config = config.model_copy(update={"output_directory": args.output})

    builder = RepositoryBuilder(source_dir, config)
    try:
        summary = asyncio.run(builder.run())
    except (OutputDirectoryConflict, RepositoryWriteError) as e:
        logger.error(f"{e.message}. Stopping.")
        return 1

    print()
    underprint("SUMMARY")
    print(
        f"Built {len(summary.built)} of {len(summary.discovered)} packages "
        f"({len(summary.skipped)} unchanged, {len(summary.failed)} failed)."
    )
    print("All done. Enjoy your new repo :)")
    return 0


if __name__ == "__main__":
    sys.exit(main())

import argparse
import logging
import sys
from typing import List, Optional

from repogen.core.dependencies import create_generator_from_file
from repogen.domain.errors import RepositoryError

logger = logging.getLogger("repogen")


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    # GitPython logs every command at DEBUG.
    logging.getLogger("git").setLevel(logging.INFO)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repogen",
        description="Generate a static Composer repository from git and local sources.",
    )
    parser.add_argument("config", help="YAML or JSON configuration file")
    parser.add_argument("--no-cache", action="store_true", help="ignore and do not write the source cache")
    parser.add_argument("--clean-cache", action="store_true", help="empty the cache before generating")
    parser.add_argument("--serve", action="store_true", help="serve the output directory after generating")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        with create_generator_from_file(args.config, use_cache=False if args.no_cache else None) as generator:
            if args.clean_cache and not generator.clean_cache():
                logger.warning("Cache could not be cleaned completely")
            packages_json = generator.generate()
            output_dir = generator.output_dir
    except RepositoryError as e:
        logger.error(f"Repository generation failed: {e}")
        return 1

    print(packages_json)

    if args.serve:
        from repogen.api.preview import serve

        serve(output_dir, host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())

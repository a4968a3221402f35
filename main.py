"""
Entrypoint: load .env and config, apply command line overrides, run the crawler
"""

import argparse
import asyncio
from typing import Optional

from dotenv import load_dotenv

from quote_crawler.app import run
from quote_crawler.config import Config


def build_config(argv: Optional[list] = None) -> Config:
    parser = argparse.ArgumentParser(description="Harvest quotes from the paginated archive into MongoDB")
    parser.add_argument("--config", default=None, help="Path to config.yaml (defaults to the packaged one)")
    parser.add_argument("--start-index", type=int, default=None, help="First archive page to fetch")
    parser.add_argument("--max-pages", type=int, default=None, help="Stop after this many pages")
    args = parser.parse_args(argv)

    config = Config(args.config)
    if args.start_index is not None:
        config.set('archive', 'start_index', value=args.start_index)
    if args.max_pages is not None:
        config.set('archive', 'max_pages', value=args.max_pages)
    return config


def main(argv: Optional[list] = None) -> int:
    # Load environment variables from .env file
    load_dotenv()
    config = build_config(argv)
    return asyncio.run(run(config))


if __name__ == "__main__":
    raise SystemExit(main())

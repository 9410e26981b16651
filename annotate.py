"""
annotate.py
───────────
Run named entity recognition over text files and print the labels as JSON.

The pipeline for the chosen slot is built once and reused for every file.

HOW TO RUN:
─────────────
    python annotate.py letter.txt invoice.txt --slot acme
    python annotate.py notes.txt --coarse --log-level DEBUG
"""

import argparse
import json
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), 'src'))

from ner import COARSE_TAGS, PipelineCache, build_pipeline, ner_annotate
from utils.config import build_settings, load_config, logging_level, setup_logging


def main():
    parser = argparse.ArgumentParser(
        description="Annotate text files with named entities",
    )
    parser.add_argument('files', nargs='+', help='Text files to annotate')
    parser.add_argument(
        '--slot',
        type=str,
        default='default',
        help='Slot from the config to use (default: default)'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Config file (default: configs/default.yaml)'
    )
    parser.add_argument(
        '--log-level',
        type=str,
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: from config, else INFO)'
    )
    parser.add_argument(
        '--coarse',
        action='store_true',
        help='Reduce tags to PER/ORG/LOC/MISC'
    )
    args = parser.parse_args()

    config = load_config(args.config)
    level = args.log_level or logging_level(config)
    logger = setup_logging(level)

    slots = build_settings(config)
    if args.slot not in slots:
        parser.error(f"Unknown slot '{args.slot}'. Available: {sorted(slots)}")
    settings = slots[args.slot]
    tag_map = COARSE_TAGS if args.coarse else None

    results = {}
    with PipelineCache(build_pipeline) as cache:
        for path in args.files:
            with open(path, 'r', encoding='utf-8') as f:
                text = f.read()
            labels = ner_annotate(cache, args.slot, settings, text, tag_map=tag_map)
            logger.info(f"{path}: {len(labels)} label(s)")
            results[path] = [label.to_dict() for label in labels]

    print(json.dumps(results, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()

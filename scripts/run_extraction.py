#!/usr/bin/env python3
"""
Leaderboard Extraction Script

Runs every extraction strategy over one page and fuses the results, then
grades the fused result.

Input:
    - A saved capture (JSON with html, markdown, apiCalls, rawJsonResponses)
    - or a live URL captured with headless Chromium

Output:
    - Fused result and quality report as JSON (stdout or --output)

Usage:
    python scripts/run_extraction.py --capture capture.json --site-name acme
    python scripts/run_extraction.py --url https://example.com/leaderboard --legacy
"""

import argparse
import asyncio
import dataclasses
import json
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from common.config import config
from common.errors import CaptureError, LeaderboardError
from common.logging.logger import get_logger, setup_logger
from common.models import ExtractionInput, LearnedPatterns, LeaderboardEntry, TeacherHints
from extraction import ExtractionMode, FusionOptions, LeaderboardExtractor
from scoring import QualityScorer, ScoringContext

logger = get_logger("run_extraction")


def _load_json(path: str):
    with open(path, "r") as f:
        return json.load(f)


async def run(args) -> dict:
    hints = TeacherHints.from_dict(_load_json(args.hints)) if args.hints else None
    patterns = LearnedPatterns.from_dict(_load_json(args.patterns)) if args.patterns else None
    previous = None
    if args.previous:
        previous = [LeaderboardEntry.from_dict(e) for e in _load_json(args.previous)]

    options = FusionOptions(
        min_confidence=args.min_confidence,
        site_name=args.site_name,
        known_keywords=tuple(args.keywords or ()),
        teacher_hints=hints,
        learned_patterns=patterns,
    )
    extractor = LeaderboardExtractor(mode=ExtractionMode.LEGACY if args.legacy else None)

    if args.capture:
        data = ExtractionInput.from_dict(_load_json(args.capture))
        if args.site_name:
            data = dataclasses.replace(data, site_name=args.site_name)
        result = await extractor.extract(data, options)
    else:
        from capture import NetworkRecorder, open_page, snapshot

        # Page-based strategies query the live page, so extract before the browser closes
        recorder = NetworkRecorder()
        async with open_page(args.url, recorder=recorder) as page:
            if page is None:
                raise CaptureError(args.url, "page did not load")
            page_capture = await snapshot(page, args.url, recorder)
            data = page_capture.to_input(page=page, site_name=args.site_name)
            result = await extractor.extract(data, options)

    report = QualityScorer().score(
        result,
        ScoringContext(previous_entries=previous, learned_patterns=patterns),
    )
    return {
        "result": result.to_dict(),
        "quality": report.to_dict(),
        "learnedPatterns": LearnedPatterns.from_fused_result(result).to_dict(),
    }


def main():
    parser = argparse.ArgumentParser(
        description="Leaderboard extraction - run all strategies, fuse, and grade the result"
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--capture", help="Saved page capture (JSON)")
    source.add_argument("--url", help="Capture this URL live with headless Chromium")

    parser.add_argument("--site-name", help="Site name, used to filter foreign API responses")
    parser.add_argument("--keywords", nargs="*", help="Known leaderboard keywords of other sites")
    parser.add_argument("--hints", help="Teacher hints JSON (column_order, podium_layout, expectedRank1)")
    parser.add_argument("--patterns", help="Learned patterns JSON (preferredSource, expectedEntries, fieldMappings)")
    parser.add_argument("--previous", help="Previous extraction entries JSON, for historical consistency")
    parser.add_argument(
        "--min-confidence",
        type=float,
        default=None,
        help=f"Minimum strategy confidence (default: {config.get('fusion.min_confidence')})"
    )
    parser.add_argument("--legacy", action="store_true", help="First-success legacy mode instead of fusion")
    parser.add_argument("--output", help="Write JSON here instead of stdout")

    args = parser.parse_args()

    setup_logger("run_extraction", console_output=True)
    for warning in config.validate():
        print(f"Config warning: {warning}", file=sys.stderr)

    try:
        output = asyncio.run(run(args))
    except LeaderboardError as e:
        logger.error(str(e))
        return 1

    text = json.dumps(output, indent=2)
    if args.output:
        Path(args.output).write_text(text)
        logger.info(f"Wrote {args.output}")
    else:
        print(text)

    result = output["result"]
    logger.info(
        f"{len(result['entries'])} entries via {result['extractionMethod']} "
        f"(confidence {result['confidence']}, quality {output['quality']['overall']})"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())

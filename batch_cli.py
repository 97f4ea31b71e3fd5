#!/usr/bin/env python3
"""
Reel Batch - command line interface

    reel-batch analyze https://www.youtube.com/shorts/abc123
    reel-batch batch urls.txt -c 4 -o output/batch-results
    reel-batch trends output/batch-results
    reel-batch providers
"""

import argparse
import sys

from reel_batch import (
    BatchError,
    ItemStatus,
    build_default_stages,
    get_available_providers,
    process_batch,
    process_batch_file,
)
from reel_batch.trends import TrendsError, analyze_trends, load_analyses, save_trends
from utils.config import ConfigError, load_config
from utils.logger import get_logger, LogLevel

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INTERRUPTED = 130


def print_batch_report(result):
    print()
    print("=" * 42)
    print("Batch Processing Finished")
    print("=" * 42)
    print(f"Total: {len(result.items)}")
    print(f"Successful: {result.successful}")
    print(f"Failed: {result.failed}")
    print(f"Duration: {result.duration_seconds:.1f}s")
    if result.summary_path:
        print(f"Summary: {result.summary_path}")

    failed = result.failed_items()
    if failed:
        print()
        print("Failed Items:")
        for item in failed:
            print(f" - {item.url}: {item.error}")


def cmd_batch(args, config) -> int:
    logger = get_logger()
    try:
        stages = build_default_stages(config)
        result = process_batch_file(
            args.file,
            stages,
            concurrency=args.concurrency,
            output_dir=args.output,
            config=config
        )
    except (BatchError, ValueError) as e:
        logger.error("CLI", f"Error: {e}")
        return EXIT_FAILED

    print_batch_report(result)

    if result.cancelled:
        return EXIT_INTERRUPTED
    return EXIT_FAILED if result.failed > 0 else EXIT_OK


def cmd_analyze(args, config) -> int:
    logger = get_logger()
    try:
        result = process_batch(
            [args.url],
            build_default_stages(config),
            concurrency=1,
            output_dir=args.output or config.output_dir,
            config=config,
            write_summary=False
        )
    except (BatchError, ValueError) as e:
        logger.error("CLI", f"Error: {e}")
        return EXIT_FAILED

    item = result.items[0]
    if item.status != ItemStatus.COMPLETED:
        logger.error("CLI", f"Analysis failed for {item.url}: {item.error}")
        return EXIT_FAILED

    analysis = item.result['analysis']
    print(f"Analysis Complete! Saved to: {item.result_path}")
    print(f"   Hook: {analysis.get('hook_type')} (\"{analysis.get('hook_text') or ''}\")")
    print(f"   Summary: {analysis.get('summary') or ''}")
    return EXIT_OK


def print_trends_report(trends, path):
    patterns = trends['patterns']
    print(f"Trend Analysis Complete! Saved to: {path}")
    print(f"Reels analyzed: {trends['analyzed_count']}")
    print(f"Average duration: {patterns['average_duration']}s")
    for hook in patterns['hook_patterns']:
        print(f"   Hook {hook['type']}: {hook['frequency']}")
    if patterns['common_ctas']:
        print(f"   Common CTAs: {', '.join(patterns['common_ctas'])}")


def cmd_trends(args, config) -> int:
    logger = get_logger()
    try:
        analyses = load_analyses(args.files)
        if not analyses:
            raise TrendsError("No valid analysis data found to aggregate.")
        trends = analyze_trends(analyses)
        path = save_trends(trends, args.output or config.output_dir)
    except (TrendsError, OSError) as e:
        logger.error("CLI", f"Error: {e}")
        return EXIT_FAILED

    print_trends_report(trends, path)
    return EXIT_OK


def cmd_providers(args, config) -> int:
    for provider in get_available_providers():
        status = "available" if provider['available'] else "unavailable"
        print(f"{provider['name']:<16} {status}")
        for model in provider['models']:
            print(f"    {model['id']:<32} {model['cost_tier']}")
    return EXIT_OK


def positive_int(value):
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='reel-batch',
        description='Download, transcribe and analyze short-form videos in bulk'
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    analyze = subparsers.add_parser('analyze', help='Download and analyze a single video')
    analyze.add_argument('url', help='Video URL (Instagram, TikTok, YouTube Shorts)')
    analyze.add_argument('--output', '-o', help='Output directory (default: OUTPUT_DIR)')
    analyze.set_defaults(handler=cmd_analyze)

    batch = subparsers.add_parser('batch', help='Process multiple videos from a file')
    batch.add_argument('file', help='File containing URLs (one per line, # for comments)')
    batch.add_argument('--concurrency', '-c', type=positive_int,
                       help='Number of videos processed at once (default: MAX_CONCURRENT_DOWNLOADS)')
    batch.add_argument('--output', '-o', help='Output directory (default: OUTPUT_DIR/batch-results)')
    batch.set_defaults(handler=cmd_batch)

    trends = subparsers.add_parser('trends', help='Aggregate trends from analysis files')
    trends.add_argument('files', nargs='+', help='analysis-*.json files or directories containing them')
    trends.add_argument('--output', '-o', help='Output directory (default: OUTPUT_DIR)')
    trends.set_defaults(handler=cmd_trends)

    providers = subparsers.add_parser('providers', help='List LLM providers and availability')
    providers.set_defaults(handler=cmd_providers)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logger = get_logger()

    try:
        config = load_config()
    except ConfigError as e:
        logger.error("CONFIG", f"Invalid configuration: {e}")
        return EXIT_FAILED

    if args.verbose:
        logger.set_level(LogLevel.DEBUG)
        logger.debug("CONFIG", "Current configuration", config.masked())
    else:
        logger.set_level(LogLevel.from_name(config.log_level))

    return args.handler(args, config)


if __name__ == '__main__':
    sys.exit(main())

#!/usr/bin/env python3
"""CLI for the scheduled page translator"""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Load environment variables (for GEMINI_API_KEY) before settings are read
from dotenv import load_dotenv

load_dotenv()

from pagetranslate.config import GEMINI_API_KEY, RequestContext, SchedulerOptions
from pagetranslate.errors import ConfigurationError, TranslationError
from pagetranslate.gemini_client import GeminiClient
from pagetranslate.scheduler import RequestScheduler
from pagetranslate.translator import is_translatable, translate_texts

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

# Suppress noisy library loggers and prevent key leakage
logging.getLogger('httpx').setLevel(logging.ERROR)

logger = logging.getLogger(__name__)


def load_option_store(path):
    """Read a flat JSON key-value store (the options page format)."""
    if not path:
        return {}
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a JSON object")
    return data


async def run_check(context):
    """Validate the API key and list the models it can use."""
    async with GeminiClient() as client:
        validation = await client.validate_api_key(context.api_key, context.model)

    if not validation.is_valid:
        logger.error("API key invalid: %s", validation.error)
        return 1

    logger.info("API key valid. %d models available:", len(validation.models))
    for model in validation.models:
        logger.info("  - %s (%s): %s", model.display_name, model.name, model.description)
    return 0


async def run_file(path, output, context, options):
    """Translate each non-empty line of a text file."""
    lines = Path(path).read_text(encoding='utf-8').splitlines()

    def report(done, total):
        logger.info("Progress: %d%% (%d/%d)", round(done / total * 100) if total else 100, done, total)

    async with RequestScheduler(GeminiClient(), context, options) as scheduler:
        translated = await translate_texts(lines, scheduler, progress=report)

    text = '\n'.join(translated) + '\n'
    if output:
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        Path(output).write_text(text, encoding='utf-8')
        logger.info("Saved: %s", output)
    else:
        sys.stdout.write(text)

    untouched = sum(
        1 for original, result in zip(lines, translated)
        if is_translatable(original) and original == result
    )
    if untouched:
        logger.warning("%d lines were left untranslated", untouched)
    return 0 if untouched == 0 else 1


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description='Translate text through a rate-limited Gemini request scheduler'
    )
    parser.add_argument(
        '--file',
        help='Text file to translate, one unit per line'
    )
    parser.add_argument(
        '--output',
        help='Where to write the translation (default: stdout)'
    )
    parser.add_argument(
        '--target',
        help='Target language code (default: TARGET_LANGUAGE or zh)'
    )
    parser.add_argument(
        '--model',
        help='Gemini model name (default: GEMINI_MODEL or gemini-pro)'
    )
    parser.add_argument(
        '--options',
        help='JSON file with scheduler options (maxRetries, maxConcurrent, ...)'
    )
    parser.add_argument(
        '--log-file',
        help='Path to log file (optional)'
    )
    parser.add_argument(
        '--check',
        action='store_true',
        help='Only validate the API key, list available models and exit'
    )

    args = parser.parse_args()

    if args.log_file:
        handler = logging.FileHandler(args.log_file)
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
        logging.getLogger().addHandler(handler)

    if args.check and args.file:
        parser.error("--check cannot be combined with --file")
    if not args.check and not args.file:
        parser.error("Either --file or --check is required")

    try:
        store = load_option_store(args.options)
        if not str(store.get('apiKey') or '').strip():
            store['apiKey'] = GEMINI_API_KEY
        if args.target:
            store['targetLanguage'] = args.target
        if args.model:
            store['model'] = args.model
        options = SchedulerOptions.from_mapping(store)
        context = RequestContext.from_mapping(store)
    except (OSError, ValueError) as e:
        logger.error(f"Invalid options: {e}")
        sys.exit(1)

    if not context.has_credential:
        logger.error("No API key configured. Set GEMINI_API_KEY or apiKey in the options file.")
        sys.exit(1)

    try:
        if args.check:
            sys.exit(asyncio.run(run_check(context)))
        sys.exit(asyncio.run(run_file(args.file, args.output, context, options)))
    except TranslationError as e:
        logger.error(f"Translation failed ({e.kind.value}): {e}")
        sys.exit(1)
    except OSError as e:
        logger.error(f"File error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()

"""
Command line entry point for VoiceBridge.

Sends local files or text through the configured relay, which is handy for
checking relay setup without a browser page.
"""

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from .core.config import get_settings, mask_api_key, save_api_key, validate_api_key_format
from .core.errors import RelayError, classify_error
from .core.logger import setup_logging
from .core.version import get_version
from .relay import create_relay


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="voicebridge", description="Voice message capture and translation relay")
    parser.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")
    sub = parser.add_subparsers(dest="command", required=True)

    file_cmd = sub.add_parser("translate-file", help="Transcribe and translate an audio or image file")
    file_cmd.add_argument("path", type=Path)
    file_cmd.add_argument("--type", dest="mime_type", default=None, help="Declared media type (guessed if omitted)")

    text_cmd = sub.add_parser("translate-text", help="Translate text into a target language")
    text_cmd.add_argument("text")
    text_cmd.add_argument("--to", dest="target", default=None, help="Target language code")

    config_cmd = sub.add_parser("config", help="Show effective settings")
    config_cmd.add_argument(
        "--set-gemini-key", dest="gemini_key", metavar="KEY", help="Validate and store the Gemini API key in the keyring"
    )
    return parser


async def _translate_file(path: Path, mime_type: Optional[str]) -> int:
    settings = get_settings()
    if not path.is_file():
        logger.error(f"File not found: {path}")
        return 2
    mime_type = mime_type or mimetypes.guess_type(path.name)[0] or "audio/ogg"
    relay = create_relay(settings)
    try:
        result = await asyncio.wait_for(relay.translate_media(path.read_bytes(), mime_type), settings.relay_timeout)
    except (RelayError, asyncio.TimeoutError) as e:
        error = classify_error(e)
        print(f"Error: {error.message} ({error.detail or error.error_type.value})", file=sys.stderr)
        return 1
    finally:
        await relay.aclose()

    print(f"Language: {result.detected_language}")
    print(f"Original: {result.original_text}")
    print(f"Translation: {result.translated_text}")
    return 0


async def _translate_text(text: str, target: Optional[str]) -> int:
    settings = get_settings()
    relay = create_relay(settings)
    try:
        result = await asyncio.wait_for(
            relay.translate_text(text, target or settings.target_language), settings.relay_timeout
        )
    except (RelayError, asyncio.TimeoutError) as e:
        error = classify_error(e)
        print(f"Error: {error.message} ({error.detail or error.error_type.value})", file=sys.stderr)
        return 1
    finally:
        await relay.aclose()

    print(result.translated_text)
    return 0


def _store_api_key(api_key: str) -> int:
    if not validate_api_key_format(api_key):
        print("Error: not a Gemini API key (expected AIza followed by 35+ characters)", file=sys.stderr)
        return 2
    if not save_api_key(api_key):
        print("Error: could not write the key to the system keyring", file=sys.stderr)
        return 1
    get_settings().gemini_api_key = api_key
    print(f"Gemini API key saved: {mask_api_key(api_key)}")
    return 0


def _show_config() -> int:
    settings = get_settings()
    for key, value in settings.model_dump().items():
        if key == "gemini_api_key":
            value = mask_api_key(value)
        print(f"{key} = {value}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging(get_settings())

    try:
        if args.command == "translate-file":
            return asyncio.run(_translate_file(args.path, args.mime_type))
        if args.command == "translate-text":
            return asyncio.run(_translate_text(args.text, args.target))
        if args.gemini_key is not None:
            return _store_api_key(args.gemini_key)
        return _show_config()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())

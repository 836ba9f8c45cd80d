"""
Source Check Script.
Validates an Xtream Codes account or an M3U playlist from the command line.

Usage:
    python -m iptv_sources.scripts.check_source xtream http://host:8080 user pass
    python -m iptv_sources.scripts.check_source m3u http://host/list.m3u --epg-url http://host/epg.xml
"""
import argparse
import asyncio
import logging
import sys
from typing import Optional

from iptv_sources.models.content import ValidationResult
from iptv_sources.models.source import M3USourceInput, XtreamSourceInput
from iptv_sources.services.source_validator import (
    format_validation_success,
    is_xtream_validation_result,
    validate_source,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Check an IPTV source before saving it')
    parser.add_argument('--timeout', type=float, default=None, help='Request timeout in seconds')
    parser.add_argument('--verbose', action='store_true', help='Show request logging')
    subparsers = parser.add_subparsers(dest='source_type', required=True)

    xtream = subparsers.add_parser('xtream', help='Xtream Codes account')
    xtream.add_argument('server_url')
    xtream.add_argument('username')
    xtream.add_argument('password')

    m3u = subparsers.add_parser('m3u', help='M3U playlist')
    m3u.add_argument('playlist_url')
    m3u.add_argument('--epg-url', default=None, help='External XMLTV guide URL')

    return parser


async def check_source(args: argparse.Namespace) -> ValidationResult:
    """Validate the source described by the parsed arguments."""
    if args.source_type == 'xtream':
        source_input = XtreamSourceInput(
            server_url=args.server_url,
            username=args.username,
            password=args.password,
        )
    else:
        source_input = M3USourceInput(playlist_url=args.playlist_url, epg_url=args.epg_url)

    return await validate_source(args.source_type, source_input, args.timeout)


def print_result(result: ValidationResult):
    if not result.is_valid:
        print(f"❌ {result.error}")
        return

    print(f"✅ {format_validation_success(result)}")

    if is_xtream_validation_result(result) and result.auth_response:
        user_info = result.auth_response.user_info
        expires = user_info.exp_date.strftime('%Y-%m-%d') if user_info.exp_date else 'never'
        print(f"   Account: {user_info.username} ({user_info.status}, expires {expires})")
        print(f"   Connections: {user_info.active_cons}/{user_info.max_connections}")
    elif getattr(result, 'epg_url', None):
        print(f"   EPG: {result.epg_url}")


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    result = asyncio.run(check_source(args))
    print_result(result)
    return 0 if result.is_valid else 1


if __name__ == "__main__":
    sys.exit(main())

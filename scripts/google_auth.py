#!/usr/bin/env python3
"""Authorize the MCP server against a Google account.

Opens the OAuth consent screen for the Calendar, Tasks and Gmail scopes and
writes an authorized-user token that the server reads from
GOOGLE_MCP_TOKEN_PATH. On a machine without a browser use --no-browser and
open the printed URL elsewhere.

Usage:
    python scripts/google_auth.py
    python scripts/google_auth.py --token-path /srv/mcp/token.json --force
    python scripts/google_auth.py --no-browser --port 8765
"""

import argparse
import sys
from pathlib import Path

# Allow running from project root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from google_auth_oauthlib.flow import InstalledAppFlow

from src.config import settings
from src.integrations.google_auth import GoogleAuthManager


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--client-secrets",
        type=Path,
        default=settings.credentials_path,
        help=f"OAuth client secrets JSON (default: {settings.credentials_path})",
    )
    parser.add_argument(
        "--token-path",
        type=Path,
        default=settings.token_path,
        help=f"Where the server expects its token (default: {settings.token_path})",
    )
    parser.add_argument("--port", type=int, default=0, help="Local redirect port (0 = any free port)")
    parser.add_argument("--no-browser", action="store_true", help="Print the consent URL instead")
    parser.add_argument("--force", action="store_true", help="Replace an existing token silently")
    return parser.parse_args(argv)


def _may_write(token_path: Path, force: bool) -> bool:
    if force or not token_path.exists():
        return True
    answer = input(f"{token_path} already exists. Replace it? [y/N] ").strip().lower()
    return answer == "y"


def _missing_scopes(granted: list[str] | None) -> list[str]:
    """Scopes the server needs that the user unticked on the consent screen."""
    return sorted(set(GoogleAuthManager.SCOPES) - set(granted or []))


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    if not args.client_secrets.exists():
        print(f"ERROR: no OAuth client secrets at {args.client_secrets}", file=sys.stderr)
        print("Create a Desktop OAuth client in Google Cloud Console and download its JSON.")
        return 1

    if not _may_write(args.token_path, args.force):
        print("Left the existing token untouched.")
        return 0

    flow = InstalledAppFlow.from_client_secrets_file(
        str(args.client_secrets), scopes=GoogleAuthManager.SCOPES
    )
    creds = flow.run_local_server(port=args.port, open_browser=not args.no_browser)

    missing = _missing_scopes(creds.granted_scopes or creds.scopes)
    if missing:
        print("WARNING: consent did not grant:", file=sys.stderr)
        for scope in missing:
            print(f"  {scope}", file=sys.stderr)
        print("Tools for those services will fail with AUTH_EXPIRED.", file=sys.stderr)

    args.token_path.parent.mkdir(parents=True, exist_ok=True)
    args.token_path.write_text(creds.to_json(), encoding="utf-8")
    print(f"Token written to {args.token_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Dev helper: send a test submission to the local submissions backend.

Builds a submission payload, optionally reading the HTML from a file, and
POSTs it to the /api/code-in-the-dark-submission endpoint.

Usage
-----
# Basic: generated sample page, targeting localhost:8000
python scripts/send_test_submission.py

# Send a specific page
python scripts/send_test_submission.py --file path/to/page.html

# Custom participant
python scripts/send_test_submission.py --discord "alice#1234" --name Alice

# Target a different backend URL
python scripts/send_test_submission.py --url http://staging.example.com

# Print the payload without sending it
python scripts/send_test_submission.py --dry-run

Environment / .env
------------------
SUBMISSION_API_URL       Default for --url (default: http://localhost:8000).

A .env file in the project root or backend/ is loaded if present.
"""

import argparse
import json
import os
import sys
import textwrap
from pathlib import Path

import httpx
from dotenv import load_dotenv

ENDPOINT_PATH = "/api/code-in-the-dark-submission"


def _make_sample_html(name: str) -> str:
    """Return a small self-contained page."""
    return textwrap.dedent(f"""\
        <!DOCTYPE html>
        <html>
          <head><title>{name}'s entry</title></head>
          <body style="background:#111;color:#eee">
            <h1>Hello from {name}</h1>
          </body>
        </html>
    """)


def _print_response(response: httpx.Response) -> None:
    status = response.status_code
    symbol = "OK" if status == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    try:
        body = response.json()
        print(json.dumps(body, indent=2))
    except ValueError:
        print(response.text)


def main() -> int:
    # scripts/ lives one level below the project root
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    load_dotenv(project_root / "backend" / ".env")

    parser = argparse.ArgumentParser(
        prog="send_test_submission.py",
        description="Send a test Code in the Dark submission to the backend.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            Examples:
              python scripts/send_test_submission.py
              python scripts/send_test_submission.py --file entry.html
              python scripts/send_test_submission.py --discord "bob#0001" --name Bob
              python scripts/send_test_submission.py --url http://localhost:8000
        """),
    )
    parser.add_argument(
        "--url",
        default=os.getenv("SUBMISSION_API_URL", "http://localhost:8000"),
        help="Backend base URL (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--discord",
        default="tester#0001",
        help='Discord handle (default: "tester#0001")',
    )
    parser.add_argument(
        "--name",
        default="Test Participant",
        help='Display name (default: "Test Participant")',
    )
    parser.add_argument(
        "--file",
        default=None,
        metavar="PATH",
        help="HTML file to submit. A sample page is generated if omitted.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Request timeout in seconds (default: 30)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the payload JSON without sending it.",
    )

    args = parser.parse_args()

    if args.file:
        file_path = Path(args.file)
        if not file_path.exists():
            print(f"ERROR: File not found: {file_path}", file=sys.stderr)
            return 1
        html = file_path.read_text(encoding="utf-8")
        print(f"Submitting file: {file_path} ({len(html):,} chars)")
    else:
        html = _make_sample_html(args.name)
        print(f"No --file specified; using generated sample page ({len(html)} chars)")

    payload = {"discord": args.discord, "name": args.name, "html": html}
    endpoint = f"{args.url.rstrip('/')}{ENDPOINT_PATH}"

    print(f"\nEndpoint  : {endpoint}")
    print(f"Discord   : {args.discord}")
    print(f"Name      : {args.name}")

    if args.dry_run:
        print("\n[DRY RUN] Payload:")
        print(json.dumps(payload, indent=2))
        return 0

    try:
        response = httpx.post(endpoint, json=payload, timeout=args.timeout)
    except httpx.ConnectError:
        print(
            f"\nERROR: Could not connect to {endpoint}\n"
            "Is the backend running? Start it with:\n"
            "  cd backend && uvicorn cid_submissions.main:app --reload",
            file=sys.stderr,
        )
        return 1
    except httpx.HTTPError as exc:
        print(f"\nERROR: {exc}", file=sys.stderr)
        return 1

    _print_response(response)

    try:
        succeeded = bool(response.json().get("success"))
    except (ValueError, AttributeError):
        succeeded = False
    return 0 if succeeded else 1


if __name__ == "__main__":
    sys.exit(main())

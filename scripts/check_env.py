"""Utility for verifying that the gateway's environment configuration is intact.

The tool performs two main checks:

1. It loads ``AppSettings`` from the provided ``.env`` file, surfacing missing
   OAuth client or session-secret entries before sign-ins start failing.
   It also checks that the OAuth callback points at the gateway's callback
   route and that production deployments only use HTTPS redirect targets,
   since the session cookie is ``Secure`` there.
2. It can record and verify a checksum for the ``.env`` file so unexpected
   edits to credentials are noticed before the next restart.

Example usages::

    # Validate required settings are present and record the expected checksum.
    python -m scripts.check_env record --env-file /srv/cad-compliance/.env \
        --hash-file /srv/cad-compliance/.env.sha256

    # Run later (e.g. from cron/systemd) to alert on drift.
    python -m scripts.check_env verify --env-file /srv/cad-compliance/.env \
        --hash-file /srv/cad-compliance/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from cad_compliance.core.config import AppSettings, _load_env_file

CALLBACK_ROUTE = "/api/oauth/callback"

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5


def _compute_hash(env_file: Path) -> str:
    """Return the SHA256 checksum for the target environment file."""
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load_settings(env_file: Path) -> AppSettings:
    """Load settings from the supplied env file, raising on missing values."""
    _load_env_file(str(env_file))
    return AppSettings(_env_file=str(env_file))  # type: ignore[call-arg]


def _describe(settings: AppSettings) -> str:
    """Summarize non-secret settings for the operator."""
    return (
        f"env={settings.environment} "
        f"oauth={settings.onshape.oauth_base_url} "
        f"api={settings.onshape.api_base_url} "
        f"session_ttl={settings.security.session_ttl_seconds}s "
        f"poll_budget={settings.export.max_poll_attempts}"
    )


def _gateway_problems(settings: AppSettings) -> list[str]:
    """Return deployment mistakes that pass field validation but break sign-in."""
    problems: list[str] = []
    callback = settings.onshape.callback_url
    if not (callback.path or "").rstrip("/").endswith(CALLBACK_ROUTE):
        problems.append(
            f"OAUTH_CALLBACK_URL must point at the gateway's {CALLBACK_ROUTE} route."
        )
    if settings.is_production:
        if callback.scheme != "https":
            problems.append("OAUTH_CALLBACK_URL must use https in production.")
        frontend = settings.frontend_base_url
        if frontend and not frontend.startswith("https://"):
            problems.append("FRONTEND_BASE_URL must use https in production.")
    return problems


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    """Persist the current checksum to ``hash_file``."""
    checksum = _compute_hash(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    """Compare the current checksum to the recorded baseline."""
    if not hash_file.exists():
        print(
            f"Expected checksum file {hash_file} is missing. "
            "Re-run with the 'record' command to establish a baseline.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _compute_hash(env_file)
    if expected == actual:
        print("Environment checksum OK.")
        return EXIT_OK

    print(
        "Environment checksum mismatch!\n"
        f"  expected: {expected}\n"
        f"  actual:   {actual}\n"
        "Review OAuth and session secrets before restarting the gateway.",
        file=sys.stderr,
    )
    return EXIT_CHECKSUM_ERROR


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate gateway settings and detect .env drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_env_argument(subparser: argparse.ArgumentParser) -> None:
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )

    for command, help_text in (
        ("record", "Validate settings and store the checksum baseline."),
        ("verify", "Validate settings and compare the checksum with the baseline."),
    ):
        subparser = subparsers.add_parser(command, help=help_text)
        add_env_argument(subparser)
        subparser.add_argument(
            "--hash-file",
            required=True,
            type=Path,
            help="Location of the checksum baseline.",
        )

    check_parser = subparsers.add_parser(
        "check",
        help="Validate settings without touching any checksum files.",
    )
    add_env_argument(check_parser)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    env_file: Path = args.env_file
    if not env_file.exists():
        print(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error during validation: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    problems = _gateway_problems(settings)
    if problems:
        print(
            "Gateway configuration problems detected:\n"
            + "\n".join(f"  - {problem}" for problem in problems),
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    print(f"Settings OK: {_describe(settings)}")

    command: str = args.command
    handlers: dict[str, Callable[[], int]] = {
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
        "check": lambda: EXIT_OK,
    }
    return handlers[command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())

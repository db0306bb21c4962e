"""Verify that the service configuration is complete before starting it.

The tool loads ``AppSettings`` from the given ``.env`` file and the process
environment, reports which settings are present (never their values), and
checks that the Pulumi access token needed for deployments is available.

Example usage::

    python -m scripts.check_env --env-file /opt/gbq-integration/.env
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from pydantic import ValidationError

from app.core.config import AppSettings, _load_env_file

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_PULUMI_ERROR = 4
EXIT_RUNTIME_ERROR = 5


def _load_settings(env_file: Path) -> AppSettings:
    """Load settings after exporting ``env_file`` into the environment."""
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _presence_report(settings: AppSettings) -> dict[str, bool]:
    return {
        "GOOGLE_CLIENT_ID": bool(settings.google.client_id),
        "GOOGLE_CLIENT_SECRET": bool(settings.google.client_secret),
        "GOOGLE_REDIRECT_URI": bool(settings.google.redirect_uri),
        "PULUMI_ACCESS_TOKEN": bool(settings.pulumi.access_token),
        "FRONTEND_URL": settings.frontend_base_url is not None,
    }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate required settings for the provisioning service."
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        type=Path,
        help="Path to the environment file (default: .env in the repo root).",
    )
    parser.add_argument(
        "--skip-pulumi",
        action="store_true",
        help="Do not fail when PULUMI_ACCESS_TOKEN is missing.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
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
        missing = sorted(
            {str(error["loc"][-1]) for error in exc.errors() if error.get("loc")}
        )
        print(
            "Settings validation failed. Missing or invalid values: "
            + ", ".join(missing or ["<unknown>"]),
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    for key, present in _presence_report(settings).items():
        print(f"{key}: {'set' if present else 'missing'}")

    if not settings.pulumi.access_token and not args.skip_pulumi:
        print(
            "PULUMI_ACCESS_TOKEN is not set; deployments will fail.",
            file=sys.stderr,
        )
        return EXIT_PULUMI_ERROR

    print("Environment OK.")
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())

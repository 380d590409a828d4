#!/usr/bin/env python3
"""
Configuration Management CLI Tool

Usage:
    python -m config.cli show          # Show current configuration
    python -m config.cli show --json   # JSON format output
    python -m config.cli validate      # Validate configuration
    python -m config.cli env           # Generate environment variable template
"""

from __future__ import annotations

import argparse
import json
import sys


def _fmt_bytes(n: int) -> str:
    if n >= 1 << 20:
        return f"{n / (1 << 20):.1f} MiB"
    if n >= 1 << 10:
        return f"{n / (1 << 10):.1f} KiB"
    return f"{n} B"


def cmd_show(args):
    """Show current configuration"""
    from config import settings

    if args.json:
        data = settings.model_dump(mode="json")
        print(json.dumps(data, indent=2, ensure_ascii=False))
        return

    print("=" * 60)
    print("Teian Configuration")
    print("=" * 60)

    print("\nData:")
    print(f"  data_dir:       {settings.data_dir}")
    print(f"  db_file:        {settings.db_file}")

    print("\nDatabase:")
    print(f"  open_timeout:   {settings.db.open_timeout}s")
    print(f"  retry_interval: {settings.db.retry_interval}s")
    print(f"  busy_timeout:   {settings.db.busy_timeout}s")

    print("\nUpload Quota:")
    print(f"  cap:            {settings.quota.cap_bytes} ({_fmt_bytes(settings.quota.cap_bytes)})")
    print(f"  reset_enabled:  {settings.quota.reset_enabled}")
    print(
        f"  reset_at:       {settings.quota.reset_hour:02d}:{settings.quota.reset_minute:02d}:"
        f"{settings.quota.reset_second:02d} (local time)"
    )

    print("\nLog Configuration:")
    print(f"  log_level:      {settings.log_level}")
    print(f"  log_format:     {settings.log_format}")

    print("\n" + "=" * 60)


def cmd_validate(args):
    """Validate configuration"""
    from config import settings

    errors = []
    warnings = []

    if not settings.data_dir.exists():
        warnings.append(f"Data directory does not exist (created on first run): {settings.data_dir}")

    if settings.db_file is not None and settings.db_file.is_dir():
        errors.append(f"db_file points to a directory: {settings.db_file}")

    if settings.db.open_timeout <= 0:
        errors.append("TEIAN_DB_OPEN_TIMEOUT must be positive")

    if settings.db.retry_interval <= 0:
        errors.append("TEIAN_DB_RETRY_INTERVAL must be positive")
    elif settings.db.retry_interval > settings.db.open_timeout:
        warnings.append("TEIAN_DB_RETRY_INTERVAL is larger than TEIAN_DB_OPEN_TIMEOUT; only one lock attempt is made")

    if settings.quota.cap_bytes == 0:
        warnings.append("Upload quota cap is 0; every non-empty upload will be rejected")

    if not settings.quota.reset_enabled:
        warnings.append("Daily quota reset is disabled; usage only grows until reset manually")

    if errors:
        print("Configuration validation failed:")
        for e in errors:
            print(f"  - {e}")
        print()

    if warnings:
        print("Configuration warnings:")
        for w in warnings:
            print(f"  - {w}")
        print()

    if not errors and not warnings:
        print("Configuration validation passed")
    elif not errors:
        print("Configuration validation passed (with warnings)")

    return 1 if errors else 0


def cmd_env(args):
    """Generate environment variable template"""
    from config import settings

    print("# Environment variable representation of current configuration")
    print("# Can be copied to .env file")
    print()

    print(f"TEIAN_DATA_DIR={settings.data_dir}")
    print(f"TEIAN_DB_FILE={settings.db_file}")
    print(f"TEIAN_LOG_LEVEL={settings.log_level}")
    print(f"TEIAN_LOG_FORMAT={settings.log_format}")
    print()

    print(f"TEIAN_DB_OPEN_TIMEOUT={settings.db.open_timeout}")
    print(f"TEIAN_DB_RETRY_INTERVAL={settings.db.retry_interval}")
    print(f"TEIAN_DB_BUSY_TIMEOUT={settings.db.busy_timeout}")
    print()

    print(f"TEIAN_QUOTA_CAP_BYTES={settings.quota.cap_bytes}")
    print(f"TEIAN_QUOTA_RESET_ENABLED={str(settings.quota.reset_enabled).lower()}")
    print(f"TEIAN_QUOTA_RESET_HOUR={settings.quota.reset_hour}")
    print(f"TEIAN_QUOTA_RESET_MINUTE={settings.quota.reset_minute}")
    print(f"TEIAN_QUOTA_RESET_SECOND={settings.quota.reset_second}")


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        description="Teian Configuration Management Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m config.cli show          Show current configuration
  python -m config.cli show --json   JSON format output
  python -m config.cli validate      Validate configuration
  python -m config.cli env           Generate environment variables
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Subcommands")

    show_parser = subparsers.add_parser("show", help="Show current configuration")
    show_parser.add_argument("--json", action="store_true", help="JSON format output")

    subparsers.add_parser("validate", help="Validate configuration")

    subparsers.add_parser("env", help="Generate environment variable template")

    args = parser.parse_args(argv)

    if args.command == "show":
        cmd_show(args)
    elif args.command == "validate":
        sys.exit(cmd_validate(args))
    elif args.command == "env":
        cmd_env(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()

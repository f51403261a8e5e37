#!/usr/bin/env python3
"""
Upload a local folder to the remote content store.

CLI wrapper for the folder upload pipeline with environment-based
configuration.

Usage:
    python scripts/upload.py ./theme my-theme
    python scripts/upload.py ./theme my-theme --mode draft
    python scripts/upload.py ./theme my-theme --options dark compact
    python scripts/upload.py --config folderpush.yaml
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

import yaml

# Add project root to path for imports (before other imports)
_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from folderpush.uploader import (  # noqa: E402
    FieldsConversionError,
    GCSUploadClient,
    UploadError,
    UploadFolderOptions,
    UploadOutcome,
    UploadResultType,
    UploadScheduler,
    has_upload_errors,
    upload_folder,
)
from folderpush.utils.config import VALID_MODES, get_config  # noqa: E402
from folderpush.utils.config_loader import load_config, validate_config  # noqa: E402
from folderpush.utils.logging import get_logger, setup_logging  # noqa: E402

logger = get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Upload a local folder to the remote content store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Upload a theme folder
  %(prog)s ./theme my-theme

  # Upload as a draft build
  %(prog)s ./theme my-theme --mode draft

  # Pass options to scripted fields (fields.js) functions
  %(prog)s ./theme my-theme --options dark compact

  # Upload every folder listed in a manifest
  %(prog)s --config folderpush.yaml
        """,
    )

    parser.add_argument("src", nargs="?", help="Local folder to upload")
    parser.add_argument("dest", nargs="?", help="Destination folder in the content store")

    parser.add_argument(
        "-a",
        "--account",
        help="Account ID to upload into (default: FOLDERPUSH_ACCOUNT_ID)",
    )

    parser.add_argument(
        "-m",
        "--mode",
        choices=list(VALID_MODES),
        help="Build mode (default: FOLDERPUSH_MODE or publish)",
    )

    parser.add_argument(
        "-o",
        "--options",
        nargs="*",
        default=[],
        help="Options passed to scripted fields functions",
    )

    parser.add_argument(
        "-i",
        "--ignore",
        action="append",
        default=[],
        help="Extra ignore pattern (can specify multiple times)",
    )

    parser.add_argument(
        "-n",
        "--concurrency",
        type=int,
        help="Maximum uploads in flight (default: FOLDERPUSH_CONCURRENCY or 10)",
    )

    parser.add_argument(
        "-c",
        "--config",
        help="YAML manifest listing folders to upload",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    args = parser.parse_args(argv)
    if not args.config and not (args.src and args.dest):
        parser.error("src and dest are required unless --config is given")
    if args.concurrency is not None and args.concurrency < 1:
        parser.error(f"--concurrency must be at least 1 (got: {args.concurrency})")
    return args


def build_jobs(args, env_config) -> List[dict]:
    """Turn CLI arguments or a manifest into a list of upload jobs."""
    default_account = args.account or env_config.account_id
    default_mode = args.mode or env_config.default_mode

    if not args.config:
        return [
            {
                "src": args.src,
                "dest": args.dest,
                "account": default_account,
                "mode": default_mode,
                "ignore": list(args.ignore),
            }
        ]

    manifest = load_config(args.config)
    errors = validate_config(manifest)
    if errors:
        raise ValueError("Invalid manifest:\n" + "\n".join(f"  - {error}" for error in errors))

    ignore = list(manifest.get("ignore", [])) + list(args.ignore)
    return [
        {
            "src": upload["src"],
            "dest": upload["dest"],
            "account": upload.get("account", default_account),
            "mode": args.mode or upload.get("mode", default_mode),
            "ignore": ignore,
        }
        for upload in manifest["uploads"]
    ]


def print_summary(results: List[UploadOutcome]) -> None:
    """Print the retry pass outcome."""
    if not results:
        print("✅ All files uploaded on the first attempt")
        return

    recovered = [r for r in results if r.result_type is UploadResultType.SUCCESS]
    failed = [r for r in results if r.result_type is UploadResultType.FAILURE]

    print("\n📊 Retry Summary:")
    print(f"  Retried: {len(results)}")
    print(f"  ✅ Recovered: {len(recovered)}")
    print(f"  ❌ Failed: {len(failed)}")

    for result in failed:
        print(f"  • {result.file}: {result.error}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for upload CLI."""
    args = parse_args(argv)

    if args.verbose:
        setup_logging(level="DEBUG")

    try:
        env_config = get_config()
        logger.info(f"Using content store bucket: {env_config.gcs_bucket}")
    except ValueError as e:
        print(f"❌ Configuration error: {e}")
        print("\nMake sure .env file exists with required variables:")
        print("  - FOLDERPUSH_BUCKET")
        return 1

    try:
        jobs = build_jobs(args, env_config)
    except (ValueError, FileNotFoundError, yaml.YAMLError) as e:
        print(f"❌ {e}")
        return 1

    missing_account = [job for job in jobs if not job["account"]]
    if missing_account:
        print("❌ No account ID: pass --account or set FOLDERPUSH_ACCOUNT_ID")
        return 1

    client = GCSUploadClient.from_config(env_config)
    concurrency = args.concurrency or env_config.upload_concurrency
    exit_code = 0

    try:
        with UploadScheduler(max_concurrency=concurrency) as scheduler:
            for job in jobs:
                print(f"📤 Uploading {job['src']} to {job['dest']}")
                print(f"   Account: {job['account']}")
                print(f"   Mode: {job['mode']}")

                options = UploadFolderOptions(
                    mode=job["mode"],
                    fields_options=list(args.options),
                    ignore_patterns=job["ignore"],
                    concurrency=concurrency,
                    node_binary=env_config.node_binary,
                )
                results = upload_folder(
                    job["account"],
                    job["src"],
                    job["dest"],
                    options,
                    client=client,
                    scheduler=scheduler,
                )
                print_summary(results)

                if has_upload_errors(results):
                    exit_code = 1

    except KeyboardInterrupt:
        print("\n⚠️  Upload cancelled by user")
        return 130

    except FieldsConversionError as e:
        print(f"❌ Could not convert {e.source_path}: {e}")
        return 1

    except UploadError as e:
        print(f"❌ Upload aborted: {e}")
        return 1

    except NotADirectoryError as e:
        print(f"❌ {e}")
        return 1

    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        print(f"❌ Unexpected error: {e}")
        return 1

    return exit_code


if __name__ == "__main__":
    sys.exit(main())

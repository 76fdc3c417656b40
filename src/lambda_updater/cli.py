#!/usr/bin/env python3
"""
Command-line interface for the Lambda Updater system.
"""
import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from lambda_updater.config import BACKENDS, DEFAULT_MAX_CONCURRENCY, UpdaterConfig
from lambda_updater.exceptions import MissingRequiredOptionError, UpdaterError
from lambda_updater.main import LambdaUpdater


def setup_logging(debug: bool = False) -> None:
    """Configure logging for the application."""
    log_level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout if debug else sys.stderr)]
    )


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="lambda-updater",
        description="Update the code of Lambda functions declared in a CloudFormation template"
    )

    # Required options are checked by UpdaterConfig so a missing one is reported with the usage line
    parser.add_argument(
        "--cfn",
        help="Path to the CloudFormation template"
    )
    parser.add_argument(
        "--stack",
        help="Name of the deployed stack"
    )
    parser.add_argument(
        "--target",
        help="Artifact to deploy, a .js file or a .jar archive"
    )

    # Update options
    parser.add_argument(
        "--functionName",
        help="Logical id of a single function to update (default: every matching function)"
    )
    parser.add_argument(
        "--useS3",
        metavar="BUCKET",
        help="Upload the archive to this S3 bucket and update the functions from there"
    )

    # AWS options
    parser.add_argument(
        "--region",
        help="AWS region to use"
    )
    parser.add_argument(
        "--backend",
        choices=BACKENDS,
        default="cli",
        help="Call AWS through the aws CLI or through boto3 (default: cli)"
    )
    parser.add_argument(
        "--max-concurrency",
        type=int,
        default=DEFAULT_MAX_CONCURRENCY,
        help=f"Maximum number of AWS calls in flight (default: {DEFAULT_MAX_CONCURRENCY})"
    )
    parser.add_argument(
        "--scratch-dir",
        help="Directory for generated zip files (default: a lambda-updater directory in the system temp dir)"
    )

    # General options
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable verbose tracing"
    )
    parser.add_argument(
        "--fail-exit-code",
        action="store_true",
        help="Exit with status 1 when the update fails (default: failures are only reported)"
    )

    return parser.parse_args(args)


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Failures are logged and the process exits normally unless
    --fail-exit-code is given, in which case any failure returns 1.
    """
    parsed_args = parse_args(args)
    setup_logging(parsed_args.debug)

    logger = logging.getLogger("lambda_updater.cli")
    failure_code = 1 if parsed_args.fail_exit_code else 0

    try:
        config = UpdaterConfig.from_args(parsed_args)
    except MissingRequiredOptionError as e:
        logger.error(str(e))
        return failure_code
    except ValueError as e:
        logger.error(f"Validation error: {e}")
        return failure_code

    try:
        batch = asyncio.run(LambdaUpdater(config).run())
    except UpdaterError as e:
        logger.error(f"Update failed: {e}")
        return failure_code
    except Exception as e:
        logger.error(f"Update failed: {e}", exc_info=True)
        return failure_code

    logger.info(f"Successfully updated {len(batch.succeeded)} function(s)")
    return 0


if __name__ == "__main__":
    sys.exit(main())

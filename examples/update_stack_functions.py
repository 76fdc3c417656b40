#!/usr/bin/env python3
"""
Example script for pushing a Node.js handler to every Node.js function of a stack.
"""
import argparse
import asyncio
import logging
import sys

from lambda_updater.config import UpdaterConfig
from lambda_updater.main import LambdaUpdater


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()]
    )


def parse_args() -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Example script for updating the Node.js functions of a stack through boto3"
    )

    parser.add_argument(
        "--template",
        default="template.yaml",
        help="Path to the CloudFormation template (default: template.yaml)"
    )
    parser.add_argument(
        "--stack",
        required=True,
        help="Name of the deployed stack"
    )
    parser.add_argument(
        "--handler",
        default="index.js",
        help="Node.js handler file to deploy (default: index.js)"
    )
    parser.add_argument(
        "--s3-bucket",
        help="Bucket to stage the archive in (optional)"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    return parser.parse_args()


def main() -> int:
    """Main entry point for the example script."""
    args = parse_args()
    setup_logging(args.verbose)

    logger = logging.getLogger(__name__)
    logger.info("Starting example update")

    try:
        config = UpdaterConfig(
            template_path=args.template,
            stack_name=args.stack,
            target=args.handler,
            s3_bucket=args.s3_bucket,
            debug=args.verbose,
            backend="boto3"
        )
        batch = asyncio.run(LambdaUpdater(config).run())

        for result in batch.succeeded:
            logger.info(f"Updated Lambda function: {result.function_name}")

        return 0

    except Exception as e:
        logger.error(f"Update failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""
Configuration for the Lambda Updater.
Holds the immutable options every pipeline stage reads.
"""
import argparse
import os
import tempfile
from dataclasses import dataclass, field
from typing import Optional

from lambda_updater.exceptions import MissingRequiredOptionError

USAGE = (
    "lambda-updater --cfn path --stack stack-name --target jsFileOrJar "
    "[--functionName name] [--useS3 bucket] [--debug]"
)

BACKENDS = ("cli", "boto3")

DEFAULT_MAX_CONCURRENCY = 8


def default_scratch_dir() -> str:
    """Directory where generated archives are written."""
    return os.path.join(tempfile.gettempdir(), "lambda-updater")


@dataclass(frozen=True)
class UpdaterConfig:
    """
    Options for one update run.

    Attributes:
        template_path: Path to the CloudFormation / SAM template
        stack_name: Name of the deployed stack
        target: Path to the `.js` or `.jar` artifact
        function_name: Logical id of a single function to update (optional)
        s3_bucket: Bucket to upload the archive to before updating (optional)
        debug: Enable verbose tracing
        region: AWS region for every call (optional)
        backend: How AWS is called, either "cli" or "boto3"
        max_concurrency: Maximum number of AWS calls in flight
        scratch_dir: Directory for generated archives
    """

    template_path: str
    stack_name: str
    target: str
    function_name: Optional[str] = None
    s3_bucket: Optional[str] = None
    debug: bool = False
    region: Optional[str] = None
    backend: str = "cli"
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    scratch_dir: str = field(default_factory=default_scratch_dir)

    def __post_init__(self):
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown backend {self.backend!r}, expected one of {', '.join(BACKENDS)}")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "UpdaterConfig":
        """
        Build the configuration from parsed command-line arguments.

        Raises:
            MissingRequiredOptionError: If --cfn, --stack or --target is missing
        """
        required = {"--cfn": args.cfn, "--stack": args.stack, "--target": args.target}
        missing = [flag for flag, value in required.items() if not value]
        if missing:
            raise MissingRequiredOptionError(missing, USAGE)

        return cls(
            template_path=args.cfn,
            stack_name=args.stack,
            target=args.target,
            function_name=args.functionName or None,
            s3_bucket=args.useS3 or None,
            debug=args.debug,
            region=args.region,
            backend=args.backend,
            max_concurrency=args.max_concurrency,
            scratch_dir=args.scratch_dir or default_scratch_dir(),
        )

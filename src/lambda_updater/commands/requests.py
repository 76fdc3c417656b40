"""
Typed requests for the AWS calls the updater makes.

Each request validates its fields against the AWS naming rules and formats
itself into an `aws` CLI argument vector. The vector is spawned without a
shell, so names taken from a template never reach a shell parser.
"""
import os
import re
import shlex
from dataclasses import dataclass
from typing import List, Optional

from lambda_updater.exceptions import InvalidRequestError

STACK_NAME_PATTERN = re.compile(r"^([a-zA-Z][-a-zA-Z0-9]{0,127}|arn:[-a-zA-Z0-9:/._+]+)$")
LOGICAL_ID_PATTERN = re.compile(r"^[a-zA-Z0-9]{1,255}$")
FUNCTION_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9:_\-.$]{1,256}$")
BUCKET_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9.\-]{1,61}[a-z0-9]$")
REGION_PATTERN = re.compile(r"^[a-z]{2}(-[a-z]+)+-\d{1,2}$")

PHYSICAL_ID_QUERY = "StackResources[].PhysicalResourceId"


def _check(field: str, value: Optional[str], pattern: "re.Pattern") -> None:
    if not value or not pattern.match(value):
        raise InvalidRequestError(field, value)


def validate_region(region: Optional[str]) -> None:
    """Validate an optional AWS region name."""
    if region is not None:
        _check("region", region, REGION_PATTERN)


class AwsRequest:
    """Base class for a single AWS call."""

    service = ""
    operation = ""

    def validate(self) -> None:
        raise NotImplementedError

    def arguments(self) -> List[str]:
        raise NotImplementedError

    def to_argv(self, region: Optional[str] = None) -> List[str]:
        """
        Format the request as an `aws` CLI argument vector.

        Args:
            region: AWS region to pass as a global option (optional)

        Returns:
            Argument vector starting with "aws"

        Raises:
            InvalidRequestError: If a field fails validation
        """
        self.validate()
        validate_region(region)
        argv = ["aws"]
        if region:
            argv.extend(["--region", region])
        argv.extend([self.service, self.operation])
        argv.extend(self.arguments())
        return argv

    def describe(self, region: Optional[str] = None) -> str:
        """Printable form of the request, used in logs and errors."""
        return shlex.join(self.to_argv(region))


@dataclass(frozen=True)
class DescribeStackResourceRequest(AwsRequest):
    """Looks up the physical id of one logical resource in a stack."""

    stack_name: str
    logical_id: str

    service = "cloudformation"
    operation = "describe-stack-resources"

    def validate(self) -> None:
        _check("stack_name", self.stack_name, STACK_NAME_PATTERN)
        _check("logical_id", self.logical_id, LOGICAL_ID_PATTERN)

    def arguments(self) -> List[str]:
        return [
            "--stack-name", self.stack_name,
            "--logical-resource-id", self.logical_id,
            "--query", PHYSICAL_ID_QUERY,
            "--output", "text",
        ]


@dataclass(frozen=True)
class UpdateFunctionCodeRequest(AwsRequest):
    """
    Replaces the code of a function, either with a local zip file uploaded
    inline or with an object already stored in S3.
    """

    function_name: str
    zip_file: Optional[str] = None
    s3_bucket: Optional[str] = None
    s3_key: Optional[str] = None

    service = "lambda"
    operation = "update-function-code"

    @property
    def uses_s3(self) -> bool:
        return self.s3_bucket is not None

    def validate(self) -> None:
        _check("function_name", self.function_name, FUNCTION_NAME_PATTERN)
        if self.uses_s3:
            if self.zip_file is not None:
                raise InvalidRequestError("zip_file", self.zip_file)
            _check("s3_bucket", self.s3_bucket, BUCKET_NAME_PATTERN)
            _validate_key(self.s3_key)
        else:
            if not self.zip_file or not os.path.isabs(self.zip_file):
                raise InvalidRequestError("zip_file", self.zip_file)
            if self.s3_key is not None:
                raise InvalidRequestError("s3_key", self.s3_key)

    def arguments(self) -> List[str]:
        argv = ["--function-name", self.function_name]
        if self.uses_s3:
            argv.extend(["--s3-bucket", self.s3_bucket, "--s3-key", self.s3_key])
        else:
            argv.extend(["--zip-file", f"fileb://{self.zip_file}"])
        return argv


@dataclass(frozen=True)
class S3CopyRequest(AwsRequest):
    """Uploads a local file to S3."""

    source: str
    bucket: str
    key: str

    service = "s3"
    operation = "cp"

    @property
    def destination(self) -> str:
        return f"s3://{self.bucket}/{self.key}"

    def validate(self) -> None:
        if not self.source:
            raise InvalidRequestError("source", self.source)
        _check("bucket", self.bucket, BUCKET_NAME_PATTERN)
        _validate_key(self.key)

    def arguments(self) -> List[str]:
        return [self.source, self.destination]


def _validate_key(key: Optional[str]) -> None:
    if not key or len(key) > 1024 or "\n" in key or key.startswith("/"):
        raise InvalidRequestError("s3_key", key)

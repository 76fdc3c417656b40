"""
Command runners.
Execute AWS calls for the pipeline, either through the `aws` CLI in a
subprocess or through boto3.
"""
import asyncio
import logging
import shlex
from typing import Optional, Sequence, Union

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from lambda_updater.commands.requests import (
    AwsRequest,
    DescribeStackResourceRequest,
    S3CopyRequest,
    UpdateFunctionCodeRequest,
)
from lambda_updater.config import DEFAULT_MAX_CONCURRENCY
from lambda_updater.exceptions import CommandExecutionError

logger = logging.getLogger(__name__)

Command = Union[str, Sequence[str]]


def first_line(output: str) -> Optional[str]:
    """Return the text before the first line break, or None for empty output."""
    if not output:
        return None
    return output.split("\n", 1)[0].rstrip("\r")


class _LimitedRunner:
    """Shares a semaphore between all calls made through one runner."""

    def __init__(self, max_concurrency: int = DEFAULT_MAX_CONCURRENCY):
        self.max_concurrency = max_concurrency
        self._semaphore: Optional[asyncio.Semaphore] = None

    @property
    def semaphore(self) -> asyncio.Semaphore:
        # Created on first use so it binds to the running loop.
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrency)
        return self._semaphore


class CommandRunner(_LimitedRunner):
    """
    Runs external commands as asyncio subprocesses.

    This class handles:
    - Spawning a command and waiting for it to exit
    - Turning a non-zero exit into a CommandExecutionError
    - Formatting typed AWS requests into `aws` CLI invocations
    """

    def __init__(self, region_name: Optional[str] = None, max_concurrency: int = DEFAULT_MAX_CONCURRENCY):
        """
        Initialize the command runner.

        Args:
            region_name: AWS region passed to every `aws` invocation (optional)
            max_concurrency: Maximum number of commands running at once
        """
        super().__init__(max_concurrency)
        self.region_name = region_name

    async def run(self, command: Command, token: Optional[str] = None) -> Optional[str]:
        """
        Run a command and wait for it to finish.

        A sequence is spawned directly; a string is handed to the shell.

        Args:
            command: Argument vector or shell command line
            token: Value to return instead of the command output (optional)

        Returns:
            The token if given, else the first line of stdout, else None

        Raises:
            CommandExecutionError: If the command cannot be started or exits non-zero
        """
        if isinstance(command, str):
            printable = command
        else:
            printable = shlex.join(command)
        logger.debug(f"Executing command: {printable}")

        try:
            if isinstance(command, str):
                process = await asyncio.create_subprocess_shell(
                    command,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            else:
                process = await asyncio.create_subprocess_exec(
                    *command,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            stdout, stderr = await process.communicate()
        except OSError as e:
            raise CommandExecutionError(printable, e) from e

        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip()
            cause = f"exit code {process.returncode}"
            if detail:
                cause = f"{cause}: {detail}"
            raise CommandExecutionError(printable, cause)

        if token:
            return token
        return first_line(stdout.decode(errors="replace"))

    async def execute(self, request: AwsRequest, token: Optional[str] = None) -> Optional[str]:
        """
        Validate a typed request and run it through the `aws` CLI.

        Args:
            request: The AWS call to make
            token: Value to return instead of the command output (optional)

        Returns:
            The token if given, else the first line of the CLI output, else None
        """
        argv = request.to_argv(self.region_name)
        async with self.semaphore:
            return await self.run(argv, token)


class Boto3Runner(_LimitedRunner):
    """
    Executes typed AWS requests through boto3 clients.

    boto3 calls block, so each one runs in a worker thread while the
    semaphore bounds how many are in flight.
    """

    def __init__(self, region_name: Optional[str] = None, max_concurrency: int = DEFAULT_MAX_CONCURRENCY):
        """
        Initialize the boto3 runner.

        Args:
            region_name: AWS region name. If not provided, uses the default region.
            max_concurrency: Maximum number of calls in flight
        """
        super().__init__(max_concurrency)
        self.region_name = region_name
        self.cloudformation_client = boto3.client('cloudformation', region_name=region_name)
        self.lambda_client = boto3.client('lambda', region_name=region_name)
        self.s3_client = boto3.client('s3', region_name=region_name)

    def _describe_stack_resource(self, request: DescribeStackResourceRequest) -> Optional[str]:
        response = self.cloudformation_client.describe_stack_resources(
            StackName=request.stack_name,
            LogicalResourceId=request.logical_id
        )
        for resource in response.get('StackResources', []):
            physical_id = resource.get('PhysicalResourceId')
            if physical_id:
                return physical_id
        return None

    def _update_function_code(self, request: UpdateFunctionCodeRequest) -> Optional[str]:
        if request.uses_s3:
            response = self.lambda_client.update_function_code(
                FunctionName=request.function_name,
                S3Bucket=request.s3_bucket,
                S3Key=request.s3_key
            )
        else:
            with open(request.zip_file, 'rb') as zip_file:
                response = self.lambda_client.update_function_code(
                    FunctionName=request.function_name,
                    ZipFile=zip_file.read()
                )
        logger.info(f"Updated Lambda function code: {response.get('FunctionArn')}")
        return response.get('FunctionArn')

    def _copy_to_s3(self, request: S3CopyRequest) -> Optional[str]:
        self.s3_client.upload_file(request.source, request.bucket, request.key)
        logger.info(f"Uploaded {request.source} to {request.destination}")
        return request.destination

    def _dispatch(self, request: AwsRequest) -> Optional[str]:
        if isinstance(request, DescribeStackResourceRequest):
            return self._describe_stack_resource(request)
        if isinstance(request, UpdateFunctionCodeRequest):
            return self._update_function_code(request)
        if isinstance(request, S3CopyRequest):
            return self._copy_to_s3(request)
        raise TypeError(f"Unsupported request type: {type(request).__name__}")

    async def execute(self, request: AwsRequest, token: Optional[str] = None) -> Optional[str]:
        """
        Validate a typed request and make the matching boto3 call.

        Args:
            request: The AWS call to make
            token: Value to return instead of the call result (optional)

        Returns:
            The token if given, else the call result

        Raises:
            CommandExecutionError: If the AWS call fails
        """
        request.validate()
        printable = request.describe(self.region_name)
        logger.debug(f"Executing request: {printable}")

        async with self.semaphore:
            try:
                result = await asyncio.to_thread(self._dispatch, request)
            except (ClientError, BotoCoreError, OSError) as e:
                logger.error(f"Error executing {printable}: {e}")
                raise CommandExecutionError(printable, e) from e

        if token:
            return token
        return result


def create_runner(backend: str, region_name: Optional[str] = None,
                  max_concurrency: int = DEFAULT_MAX_CONCURRENCY) -> Union[CommandRunner, Boto3Runner]:
    """Build the runner for the configured backend."""
    if backend == "boto3":
        return Boto3Runner(region_name=region_name, max_concurrency=max_concurrency)
    return CommandRunner(region_name=region_name, max_concurrency=max_concurrency)

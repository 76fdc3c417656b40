"""
Lambda function code updater.
Pushes an archive to every resolved Lambda function.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from lambda_updater.archive.archiver import ArchiveDescriptor
from lambda_updater.cfn.template_resolver import ResolvedFunction
from lambda_updater.commands.requests import UpdateFunctionCodeRequest
from lambda_updater.exceptions import UpdaterError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FunctionUpdateResult:
    """Outcome of updating one function."""

    function_name: str
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class UpdateBatchResult:
    """Outcome of updating every function in a run."""

    results: List[FunctionUpdateResult] = field(default_factory=list)

    @property
    def succeeded(self) -> List[FunctionUpdateResult]:
        return [result for result in self.results if result.succeeded]

    @property
    def failed(self) -> List[FunctionUpdateResult]:
        return [result for result in self.results if not result.succeeded]

    @property
    def ok(self) -> bool:
        return not self.failed


def build_request(function_name: str, archive: ArchiveDescriptor) -> UpdateFunctionCodeRequest:
    """Build the update request for a function, inline or by S3 reference."""
    if archive.uses_s3:
        return UpdateFunctionCodeRequest(
            function_name=function_name,
            s3_bucket=archive.s3_bucket,
            s3_key=archive.s3_key,
        )
    return UpdateFunctionCodeRequest(function_name=function_name, zip_file=archive.local_path)


class LambdaFunctionUpdater:
    """
    Updates the code of Lambda functions.

    Every function gets its own update call. Calls run concurrently and a
    failing call does not stop the others or undo finished ones.
    """

    def __init__(self, runner):
        """
        Initialize the function updater.

        Args:
            runner: Runner used to execute the update-function-code calls
        """
        self.runner = runner

    async def _update_function_code(self, function_name: str, archive: ArchiveDescriptor) -> FunctionUpdateResult:
        try:
            await self.runner.execute(build_request(function_name, archive), token=function_name)
        except UpdaterError as e:
            logger.error(f"Error updating Lambda function code for {function_name}: {e}")
            return FunctionUpdateResult(function_name=function_name, error=e)
        logger.info(f"Updated Lambda function code: {function_name}")
        return FunctionUpdateResult(function_name=function_name)

    async def update_functions(self, functions: Sequence[ResolvedFunction],
                               archive: ArchiveDescriptor) -> UpdateBatchResult:
        """
        Update every function with a physical id.

        Args:
            functions: Functions resolved from the template
            archive: Archive to push

        Returns:
            One result per updated function
        """
        names = []
        for function in functions:
            if function.physical_id:
                names.append(function.physical_id)
            else:
                logger.debug(f"Ignoring {function.logical_id}, because it has no physical id.")

        if not names:
            logger.warning("No physical function ids were resolved, nothing to update.")

        results = await asyncio.gather(*(self._update_function_code(name, archive) for name in names))
        return UpdateBatchResult(results=list(results))

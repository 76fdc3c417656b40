"""
Main update pipeline for Lambda Updater.

This module ties the stages together: archive the artifact, resolve the
functions declared in the template, then push the archive to each of them.
"""
import logging
from typing import Optional

from lambda_updater.archive.archiver import ArchiveDescriptor, Archiver
from lambda_updater.cfn.template_resolver import TemplateResolver
from lambda_updater.commands.runner import create_runner
from lambda_updater.config import UpdaterConfig
from lambda_updater.exceptions import UpdateFailedError
from lambda_updater.lambda_func.function_updater import LambdaFunctionUpdater, UpdateBatchResult
from lambda_updater.progress import ProgressIndicator


class LambdaUpdater:
    """
    Main class for updating Lambda functions from a local artifact.

    This class integrates all components of the Lambda Updater system:
    - Archive creation and optional S3 upload
    - Template parsing and physical id resolution
    - Concurrent function code updates
    """

    def __init__(self, config: UpdaterConfig, runner=None, progress: Optional[ProgressIndicator] = None):
        """
        Initialize the Lambda Updater.

        Args:
            config: Options for this run
            runner: Runner for AWS calls. If not provided, one is built for the configured backend.
            progress: Progress indicator. If not provided, a terminal spinner is used.
        """
        self.config = config
        self.runner = runner or create_runner(
            config.backend,
            region_name=config.region,
            max_concurrency=config.max_concurrency
        )
        self.archiver = Archiver(self.runner, scratch_dir=config.scratch_dir)
        self.template_resolver = TemplateResolver(self.runner)
        self.function_updater = LambdaFunctionUpdater(self.runner)
        self.progress = progress or ProgressIndicator()
        self.logger = logging.getLogger(__name__)

    async def _archive(self) -> ArchiveDescriptor:
        self.progress.start("Zipping files...")
        archive = await self.archiver.archive(self.config.target, s3_bucket=self.config.s3_bucket)
        self.progress.succeed(f"Zipped file: {archive.location}")
        return archive

    async def _update(self, archive: ArchiveDescriptor) -> UpdateBatchResult:
        self.progress.start("Collecting function(s) to update...")
        functions = await self.template_resolver.resolve(
            template_path=self.config.template_path,
            stack_name=self.config.stack_name,
            family=archive.family.value,
            function_name=self.config.function_name
        )
        self.progress.succeed(f"Found {len(functions)} potential function(s) to update.")
        self.logger.debug(f"Collected function names: {[function.physical_id for function in functions]}")

        self.progress.start("Updating function(s)...")
        batch = await self.function_updater.update_functions(functions, archive)
        if not batch.ok:
            raise UpdateFailedError(batch)

        names = ", ".join(result.function_name for result in batch.succeeded)
        self.progress.succeed(f"Updated {len(batch.succeeded)} function(s): {names}")
        return batch

    async def run(self) -> UpdateBatchResult:
        """
        Run the whole pipeline.

        Returns:
            The per-function update results

        Raises:
            UpdaterError: If any stage fails. The active progress indicator is marked failed first.
        """
        self.logger.debug(f"Using options: {self.config}")
        try:
            archive = await self._archive()
            return await self._update(archive)
        except Exception as e:
            if self.progress.active:
                self.progress.fail(str(e))
            raise

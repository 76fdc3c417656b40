"""
Artifact archiver.
Turns the target artifact into a zip archive Lambda accepts.
"""
import enum
import logging
import os
import zipfile
from dataclasses import dataclass
from typing import Optional

from lambda_updater.commands.requests import S3CopyRequest
from lambda_updater.exceptions import InvalidPathError, UnsupportedArtifactTypeError

logger = logging.getLogger(__name__)

S3_KEY_PREFIX = "_lambda-updater"


class ArtifactFamily(str, enum.Enum):
    """Kind of artifact, matched against function runtimes."""

    NODE = "node"
    JAVA = "java"


EXTENSIONS = {
    ".jar": ArtifactFamily.JAVA,
    ".js": ArtifactFamily.NODE,
}


@dataclass(frozen=True)
class ArchiveDescriptor:
    """Where the archive for an update lives."""

    family: ArtifactFamily
    local_path: str
    s3_bucket: Optional[str] = None
    s3_key: Optional[str] = None

    @property
    def uses_s3(self) -> bool:
        return self.s3_bucket is not None

    @property
    def location(self) -> str:
        if self.uses_s3:
            return self.s3_key
        return self.local_path


def classify(target: str) -> ArtifactFamily:
    """
    Return the artifact family for a target path.

    Raises:
        UnsupportedArtifactTypeError: If the extension is neither .js nor .jar
    """
    _, extension = os.path.splitext(target)
    try:
        return EXTENSIONS[extension]
    except KeyError:
        raise UnsupportedArtifactTypeError(target) from None


def write_zip(source: str, destination: str) -> int:
    """
    Write a zip archive containing only `source`, stored under its base name.

    Returns:
        Size of the archive in bytes
    """
    os.makedirs(os.path.dirname(destination), exist_ok=True)
    with zipfile.ZipFile(destination, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
        archive.write(source, arcname=os.path.basename(source))
    return os.path.getsize(destination)


class Archiver:
    """
    Prepares the archive for a code update.

    This class handles:
    - Classifying the target as a script or a prebuilt jar
    - Zipping scripts into the scratch directory
    - Uploading the archive to S3 when a bucket is configured
    """

    def __init__(self, runner, scratch_dir: str):
        """
        Initialize the archiver.

        Args:
            runner: Runner used for the S3 upload
            scratch_dir: Directory where generated archives are written
        """
        self.runner = runner
        self.scratch_dir = scratch_dir

    def _archive_path(self, target: str, family: ArtifactFamily) -> str:
        if family is ArtifactFamily.JAVA:
            # A jar is already a zip archive.
            return os.path.abspath(target)
        stem, _ = os.path.splitext(os.path.basename(target))
        return os.path.join(self.scratch_dir, f"{stem}.zip")

    async def archive(self, target: str, s3_bucket: Optional[str] = None) -> ArchiveDescriptor:
        """
        Build the archive descriptor for a target.

        Args:
            target: Path to the `.js` or `.jar` artifact
            s3_bucket: Bucket to upload the archive to (optional)

        Returns:
            Descriptor pointing at the local archive or at its S3 key

        Raises:
            UnsupportedArtifactTypeError: If the target type is not supported
            InvalidPathError: If the target is missing or the archive path is relative
            CommandExecutionError: If the S3 upload fails
        """
        family = classify(target)
        if not os.path.isfile(target):
            raise InvalidPathError(target, "Target file does not exist")

        archive_path = self._archive_path(target, family)
        logger.debug(f"Zip file location: {archive_path}")
        logger.debug(f"Target type: {family.value}")

        # Only checked for inline uploads; the S3 path is reported as a key.
        if not s3_bucket and not os.path.isabs(archive_path):
            raise InvalidPathError(archive_path, "Path to zip file is relative, but we need an absolute path")

        if family is ArtifactFamily.NODE:
            size = write_zip(target, archive_path)
            logger.debug(f"Total bytes for zip file: {size}")

        if not s3_bucket:
            return ArchiveDescriptor(family=family, local_path=archive_path)

        key = f"{S3_KEY_PREFIX}/{os.path.basename(archive_path)}"
        await self.runner.execute(S3CopyRequest(source=archive_path, bucket=s3_bucket, key=key))
        logger.info(f"Uploaded archive to s3://{s3_bucket}/{key}")
        return ArchiveDescriptor(family=family, local_path=archive_path, s3_bucket=s3_bucket, s3_key=key)

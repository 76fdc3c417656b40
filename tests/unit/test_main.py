"""
Unit tests for the main Lambda Updater pipeline.
"""
import asyncio
import os
import zipfile
from unittest.mock import patch

import pytest

from lambda_updater.commands.requests import (
    DescribeStackResourceRequest,
    S3CopyRequest,
    UpdateFunctionCodeRequest,
)
from lambda_updater.config import UpdaterConfig
from lambda_updater.exceptions import (
    NoResourcesFoundError,
    UnsupportedArtifactTypeError,
    UpdateFailedError,
)
from lambda_updater.main import LambdaUpdater


@pytest.fixture
def make_updater(template_path, tmp_path, fake_runner, progress):
    def _make(target, template=None, **options):
        config = UpdaterConfig(
            template_path=template or template_path,
            stack_name="my-stack",
            target=target,
            scratch_dir=str(tmp_path / "scratch"),
            **options
        )
        return LambdaUpdater(config, runner=fake_runner, progress=progress)
    return _make


def test_update_script_functions(make_updater, script_target, fake_runner, tmp_path, console_output):
    """Test that a script updates the Node.js functions only."""
    fake_runner.responses = {"FuncA": "my-stack-FuncA-1A2B3C"}

    batch = asyncio.run(make_updater(script_target).run())

    assert [result.function_name for result in batch.succeeded] == ["my-stack-FuncA-1A2B3C"]
    assert fake_runner.requests == [
        DescribeStackResourceRequest(stack_name="my-stack", logical_id="FuncA"),
        UpdateFunctionCodeRequest(
            function_name="my-stack-FuncA-1A2B3C",
            zip_file=str(tmp_path / "scratch" / "index.zip")
        ),
    ]
    output = console_output.getvalue()
    assert "Found 1 potential function(s) to update." in output
    assert "Updated 1 function(s): my-stack-FuncA-1A2B3C" in output


def test_update_named_jar_function(make_updater, jar_target, fake_runner, tmp_path, monkeypatch):
    """Test that a named function receives the jar as-is."""
    monkeypatch.chdir(tmp_path)
    fake_runner.responses = {"FuncB": "my-stack-FuncB-4D5E6F"}

    asyncio.run(make_updater("code.jar", function_name="FuncB").run())

    assert fake_runner.requests == [
        DescribeStackResourceRequest(stack_name="my-stack", logical_id="FuncB"),
        UpdateFunctionCodeRequest(function_name="my-stack-FuncB-4D5E6F", zip_file=os.path.abspath("code.jar")),
    ]


def test_update_through_s3(make_updater, script_target, fake_runner, tmp_path):
    """Test that the archive is uploaded before functions are updated by reference."""
    fake_runner.responses = {"FuncA": "my-stack-FuncA-1A2B3C"}

    asyncio.run(make_updater(script_target, s3_bucket="mybucket").run())

    assert fake_runner.requests == [
        S3CopyRequest(
            source=str(tmp_path / "scratch" / "index.zip"),
            bucket="mybucket",
            key="_lambda-updater/index.zip"
        ),
        DescribeStackResourceRequest(stack_name="my-stack", logical_id="FuncA"),
        UpdateFunctionCodeRequest(
            function_name="my-stack-FuncA-1A2B3C",
            s3_bucket="mybucket",
            s3_key="_lambda-updater/index.zip"
        ),
    ]


def test_no_physical_ids_is_a_trivial_success(make_updater, script_target, fake_runner):
    """Test that no resolved physical id means no update calls and no failure."""
    batch = asyncio.run(make_updater(script_target).run())

    assert batch.results == []
    assert not any(isinstance(request, UpdateFunctionCodeRequest) for request in fake_runner.requests)


def test_no_matching_resources_fails(make_updater, script_target, fake_runner, console_output):
    """Test that a template without matches fails and marks the spinner failed."""
    with pytest.raises(NoResourcesFoundError):
        asyncio.run(make_updater(script_target, function_name="FuncB").run())

    assert fake_runner.requests == []
    assert "✖ No function(s) found for an update" in console_output.getvalue()


def test_failed_update_reports_every_function(make_updater, script_target, fake_runner, write_template, console_output):
    """Test that a failed update raises with the whole batch."""
    fake_runner.responses = {"FuncA": "fn-a", "FuncB": "fn-b"}
    fake_runner.failures = {"fn-a"}
    template = write_template("""\
        Resources:
          FuncA:
            Properties:
              Runtime: nodejs18.x
          FuncB:
            Properties:
              Runtime: nodejs20.x
        """)

    with pytest.raises(UpdateFailedError) as excinfo:
        asyncio.run(make_updater(script_target, template=template).run())

    batch = excinfo.value.batch
    assert [result.function_name for result in batch.failed] == ["fn-a"]
    assert [result.function_name for result in batch.succeeded] == ["fn-b"]
    assert "✖ Failed to update 1 of 2 function(s): fn-a" in console_output.getvalue()


def test_archive_is_written_before_update(make_updater, script_target, fake_runner):
    """Test that the zip is complete on disk when the update call is made."""
    fake_runner.responses = {"FuncA": "my-stack-FuncA-1A2B3C"}
    entries = {}
    execute = fake_runner.execute

    async def read_archive_then_execute(request, token=None):
        if isinstance(request, UpdateFunctionCodeRequest):
            with zipfile.ZipFile(request.zip_file) as archive:
                entries[request.function_name] = archive.namelist()
        return await execute(request, token)

    fake_runner.execute = read_archive_then_execute

    asyncio.run(make_updater(script_target).run())

    assert entries == {"my-stack-FuncA-1A2B3C": ["index.js"]}


def test_archive_error_stops_pipeline(make_updater, tmp_path, fake_runner, console_output):
    """Test that nothing is resolved when the artifact cannot be archived."""
    target = tmp_path / "handler.py"
    target.write_text("def handler(event, context): pass\n")

    with pytest.raises(UnsupportedArtifactTypeError):
        asyncio.run(make_updater(str(target)).run())

    assert fake_runner.requests == []
    assert "✖ Unsupported file type" in console_output.getvalue()


@patch('lambda_updater.main.create_runner')
def test_runner_built_from_config(mock_create_runner, template_path, progress):
    """Test that the runner follows the configured backend, region and limit."""
    config = UpdaterConfig(
        template_path=template_path,
        stack_name="my-stack",
        target="index.js",
        region="eu-west-1",
        backend="boto3",
        max_concurrency=3
    )

    updater = LambdaUpdater(config, progress=progress)

    mock_create_runner.assert_called_once_with("boto3", region_name="eu-west-1", max_concurrency=3)
    assert updater.archiver.runner is mock_create_runner.return_value
    assert updater.template_resolver.runner is mock_create_runner.return_value
    assert updater.function_updater.runner is mock_create_runner.return_value

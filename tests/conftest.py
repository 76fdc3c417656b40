"""
Pytest configuration file for Lambda Updater tests.
"""
import io
import os
import textwrap
from unittest.mock import patch

import boto3
import moto
import pytest
from rich.console import Console

from lambda_updater.commands.requests import UpdateFunctionCodeRequest
from lambda_updater.exceptions import CommandExecutionError
from lambda_updater.progress import ProgressIndicator


TEMPLATE = """\
AWSTemplateFormatVersion: '2010-09-09'
Transform: AWS::Serverless-2016-10-31
Resources:
  FuncA:
    Type: AWS::Lambda::Function
    Properties:
      Runtime: nodejs14.x
      Handler: index.handler
      Role: !GetAtt FuncRole.Arn
  FuncB:
    Type: AWS::Lambda::Function
    Properties:
      Runtime: java11
      Handler: com.example.Handler::handleRequest
      Code:
        S3Bucket: !Ref CodeBucket
        S3Key: !Sub "${AWS::StackName}/code.jar"
  BucketX:
    Type: AWS::S3::Bucket
    Properties:
      BucketName: !Join ["-", [!Ref "AWS::StackName", "bucket"]]
"""


class FakeRunner:
    """Records requests and answers them from canned responses."""

    def __init__(self):
        self.requests = []
        self.responses = {}
        self.failures = set()

    async def execute(self, request, token=None):
        self.requests.append(request)
        if isinstance(request, UpdateFunctionCodeRequest) and request.zip_file:
            assert os.path.isfile(request.zip_file), f"archive {request.zip_file} was not written before the update"
        key = getattr(request, 'logical_id', None) or getattr(request, 'function_name', None)
        if key in self.failures:
            raise CommandExecutionError(request.describe(), "exit code 255")
        if token:
            return token
        return self.responses.get(key)


@pytest.fixture
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    with patch.dict('os.environ', {
        'AWS_ACCESS_KEY_ID': 'testing',
        'AWS_SECRET_ACCESS_KEY': 'testing',
        'AWS_SECURITY_TOKEN': 'testing',
        'AWS_SESSION_TOKEN': 'testing',
        'AWS_DEFAULT_REGION': 'us-east-1',
    }):
        yield


@pytest.fixture
def mocked_aws(aws_credentials):
    """Run the test against moto's in-memory AWS."""
    with moto.mock_aws():
        yield


@pytest.fixture
def s3_client(mocked_aws):
    """S3 client fixture."""
    return boto3.client('s3')


@pytest.fixture
def iam_client(mocked_aws):
    """IAM client fixture."""
    return boto3.client('iam')


@pytest.fixture
def lambda_client(mocked_aws):
    """Lambda client fixture."""
    return boto3.client('lambda')


@pytest.fixture
def fake_runner():
    """Runner that never leaves the process."""
    return FakeRunner()


@pytest.fixture
def template_path(tmp_path):
    """Template with a Node.js function, a Java function and a bucket."""
    path = tmp_path / "template.yaml"
    path.write_text(TEMPLATE)
    return str(path)


@pytest.fixture
def write_template(tmp_path):
    """Write an arbitrary template body and return its path."""
    def _write(body, name="custom.yaml"):
        path = tmp_path / name
        path.write_text(textwrap.dedent(body))
        return str(path)
    return _write


@pytest.fixture
def script_target(tmp_path):
    """A Node.js handler on disk."""
    source_dir = tmp_path / "src"
    source_dir.mkdir()
    path = source_dir / "index.js"
    path.write_text("exports.handler = async () => 'ok';\n")
    return str(path)


@pytest.fixture
def jar_target(tmp_path):
    """A prebuilt jar on disk."""
    path = tmp_path / "code.jar"
    path.write_bytes(b"PK\x05\x06" + b"\x00" * 18)
    return str(path)


@pytest.fixture
def console_output():
    """Buffer the progress indicator writes to."""
    return io.StringIO()


@pytest.fixture
def progress(console_output):
    """Progress indicator rendering into a buffer."""
    return ProgressIndicator(Console(file=console_output, force_terminal=False, width=200))

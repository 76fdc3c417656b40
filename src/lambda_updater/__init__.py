"""
Lambda Updater - pushes local build artifacts to Lambda functions declared in a
CloudFormation template.

This package resolves the logical function names of a template to the physical
functions of a deployed stack and updates their code from a `.js` script or a
prebuilt `.jar` archive.
"""

__version__ = "0.1.0"

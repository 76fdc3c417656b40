"""
CloudFormation template resolver.
Finds the functions in a template that match an artifact and resolves them to
the physical functions of a deployed stack.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import yaml

from lambda_updater.commands.requests import DescribeStackResourceRequest
from lambda_updater.exceptions import NoResourcesFoundError, TemplateParseError

logger = logging.getLogger(__name__)

INTRINSIC_TAGS = [
    "!And", "!Base64", "!Cidr", "!Condition", "!Equals", "!FindInMap", "!GetAtt",
    "!GetAZs", "!If", "!ImportValue", "!Join", "!Not", "!Or", "!Ref", "!Select",
    "!Split", "!Sub", "!Transform",
]


class CfnLoader(yaml.SafeLoader):
    """YAML loader that accepts CloudFormation short-form intrinsic functions."""

    pass


def long_form_name(tag: str) -> str:
    """Name of the long-form key for a short-form tag, e.g. !Sub -> Fn::Sub."""
    name = tag.lstrip("!")
    if name in ("Ref", "Condition"):
        return name
    return f"Fn::{name}"


def cfn_constructor(loader: yaml.Loader, node: yaml.Node) -> Any:
    """Build the long-form mapping of an intrinsic function tag, e.g. {"Ref": "Stage"}."""
    if isinstance(node, yaml.ScalarNode):
        value = loader.construct_scalar(node)
    elif isinstance(node, yaml.SequenceNode):
        value = loader.construct_sequence(node)
    elif isinstance(node, yaml.MappingNode):
        value = loader.construct_mapping(node)
    else:
        value = ""
    return {long_form_name(node.tag): value}


for tag in INTRINSIC_TAGS:
    yaml.add_constructor(tag, cfn_constructor, Loader=CfnLoader)


@dataclass(frozen=True)
class ResourceCandidate:
    """A template resource that may receive the artifact."""

    logical_id: str
    runtime: str


@dataclass(frozen=True)
class ResolvedFunction:
    """A candidate together with the physical id reported by the stack."""

    logical_id: str
    physical_id: Optional[str]


def load_template(template_path: str) -> Dict[str, Any]:
    """
    Load a CloudFormation template and return its Resources section.

    Args:
        template_path: Path to a YAML or JSON template

    Returns:
        Mapping of logical resource id to resource definition

    Raises:
        TemplateParseError: If the file cannot be read, is malformed or has no Resources mapping
    """
    try:
        with open(template_path, encoding="utf-8") as f:
            document = yaml.load(f, Loader=CfnLoader)
    except OSError as e:
        raise TemplateParseError(template_path, f"cannot read file: {e}") from e
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        raise TemplateParseError(template_path, str(e)) from e

    if not isinstance(document, dict):
        raise TemplateParseError(template_path, "template is not a mapping")

    resources = document.get("Resources")
    if not isinstance(resources, dict):
        raise TemplateParseError(template_path, "template has no Resources section")

    return resources


def potential_function_names(resources: Dict[str, Any], function_name: Optional[str] = None) -> List[str]:
    """
    List the logical ids worth inspecting.

    All resources are returned unless a single function name is given, in
    which case only that name is returned, and only if the template has it.
    """
    if function_name:
        names = [function_name] if function_name in resources else []
    else:
        names = list(resources)
    logger.debug(f"Found potential resources in template: {names}")
    return names


def runtime_matches(runtime: str, family: str) -> bool:
    """A runtime matches when the family tag is a substring of it."""
    return family in runtime


def select_candidates(resources: Dict[str, Any], family: str,
                      function_name: Optional[str] = None) -> List[ResourceCandidate]:
    """
    Filter template resources down to functions of the given family.

    Resources without a Properties mapping or without a string Runtime are
    skipped, which leaves out buckets, roles and other non-function resources.
    A Runtime given through an intrinsic function loads as a mapping and is
    skipped as well.
    """
    candidates = []
    for logical_id in potential_function_names(resources, function_name):
        definition = resources[logical_id]
        properties = definition.get("Properties") if isinstance(definition, dict) else None
        if not isinstance(properties, dict):
            continue
        runtime = properties.get("Runtime")
        if not isinstance(runtime, str):
            continue
        if runtime_matches(runtime, family):
            candidates.append(ResourceCandidate(logical_id=logical_id, runtime=runtime))
        else:
            logger.debug(f"Skipping {logical_id}: runtime {runtime} does not match {family}")
    return candidates


class TemplateResolver:
    """
    Resolves template functions to deployed Lambda functions.

    This class handles:
    - Parsing the template, including intrinsic function tags
    - Selecting functions whose runtime matches the artifact family
    - Looking up the physical id of each selected function in the stack
    """

    def __init__(self, runner):
        """
        Initialize the template resolver.

        Args:
            runner: Runner used to execute the describe-stack-resources lookups
        """
        self.runner = runner

    async def resolve(self, template_path: str, stack_name: str, family: str,
                      function_name: Optional[str] = None) -> List[ResolvedFunction]:
        """
        Resolve the functions to update.

        Args:
            template_path: Path to the CloudFormation template
            stack_name: Name of the deployed stack
            family: Artifact family tag, e.g. "node" or "java"
            function_name: Logical id of a single function (optional)

        Returns:
            One ResolvedFunction per matching candidate, in template order

        Raises:
            TemplateParseError: If the template cannot be parsed
            NoResourcesFoundError: If no resource matches
            CommandExecutionError: If a lookup fails
        """
        resources = load_template(template_path)
        candidates = select_candidates(resources, family, function_name)
        if not candidates:
            raise NoResourcesFoundError(family, function_name)

        lookups = [
            self.runner.execute(DescribeStackResourceRequest(stack_name=stack_name, logical_id=candidate.logical_id))
            for candidate in candidates
        ]
        physical_ids = await asyncio.gather(*lookups)

        resolved = [
            ResolvedFunction(logical_id=candidate.logical_id, physical_id=physical_id)
            for candidate, physical_id in zip(candidates, physical_ids)
        ]
        logger.debug(f"Resolved functions: {resolved}")
        return resolved

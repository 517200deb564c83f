"""
ACL Loader

Parses ACL YAML files into owner / release-owner ACL objects.
Any extraneous keys are kept as free-form metadata.
"""

import logging
from typing import Iterable, List, Tuple

import yaml
from pydantic import ValidationError

from ..errors import AclParseError, ErrorReport
from ..models.acl import Acl, AclFileSchema, OwnerAcl, ReleaseOwnerAcl


logger = logging.getLogger(__name__)


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = '.'.join(str(loc) for loc in item.get('loc', ())) or 'file'
        parts.append(f"{location}: {item.get('msg')}")
    return '\n'.join(parts)


def parse_acl(name: str, yaml_text: str) -> Acl:
    """
    Parse the text of one ACL file.

    Args:
        name: ACL file name (used as the ACL identity)
        yaml_text: YAML content of the file

    Returns:
        OwnerAcl or ReleaseOwnerAcl

    Raises:
        AclParseError: If the file is not valid YAML or misses required data
    """
    try:
        data = yaml.safe_load(yaml_text)
    except yaml.YAMLError as e:
        raise AclParseError(f"ACL {name} is not valid YAML: {e}", acl_name=name)

    if not isinstance(data, dict):
        raise AclParseError(f"ACL {name} must be a YAML mapping, got {type(data).__name__}", acl_name=name)

    try:
        schema = AclFileSchema.model_validate(data)
    except ValidationError as e:
        raise AclParseError(f"ACL parse error in {name}:\n{_format_validation_error(e)}", acl_name=name)

    common = dict(
        name=name,
        paths=schema.paths,
        exclude_paths=schema.exclude_paths,
        description=schema.description,
        block_message=schema.block_message,
        groups=schema.groups,
        whitelist=schema.whitelist,
        metadata=dict(schema.model_extra or {}),
    )

    if schema.owners is not None:
        return OwnerAcl(owners=schema.owners, team=schema.team_binding(), **common)
    return ReleaseOwnerAcl(release_owners=schema.release_owners, **common)


def load_acls(files: Iterable[Tuple[str, str]]) -> Tuple[List[Acl], ErrorReport]:
    """
    Parse a set of ACL files, reporting malformed ones instead of failing.

    Args:
        files: (file name, YAML text) pairs

    Returns:
        Tuple of (parsed ACLs, report of files that could not be parsed)
    """
    acls: List[Acl] = []
    report = ErrorReport()

    for name, text in files:
        try:
            acls.append(parse_acl(name, text))
        except AclParseError as e:
            report.add(e)

    logger.info(f"Loaded {len(acls)} ACLs ({len(report)} invalid)")
    return acls, report

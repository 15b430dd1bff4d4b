"""Materialize the GitHub Actions network role definition from its template."""

import json
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .config import TEMPLATES_DIRECTORY, NetworkConfig

log = logging.getLogger(__name__)

ROLE_TEMPLATE_FILE = TEMPLATES_DIRECTORY / "github-actions-network-role.json"
SUBSCRIPTION_ID_PLACEHOLDER = "SUBSCRIPTION_ID_PLACEHOLDER"


def load_role_template(template_path: Optional[Path] = None) -> str:
    """Read the raw role definition template text."""
    return (template_path or ROLE_TEMPLATE_FILE).read_text(encoding="utf-8")


def render_role_definition(template: str, subscription_id: str) -> str:
    """Replace every subscription placeholder with the literal identifier.

    The identifier is inserted as-is: it is not escaped or validated.
    """
    return template.replace(SUBSCRIPTION_ID_PLACEHOLDER, subscription_id)


@contextmanager
def materialized_role_definition(
    config: NetworkConfig,
    template_path: Optional[Path] = None,
    scratch_dir: Optional[Path] = None,
) -> Iterator[Path]:
    """Write the rendered role definition to a scratch file for one use.

    The definition's Name is set to the configured custom role name so the
    role created here matches the name used by the role assignments.

    Args:
        config: Run configuration (subscription id and role name)
        template_path: Template to render (default: bundled role template)
        scratch_dir: Directory for the scratch file (default: system temp dir)

    Yields:
        Path to the materialized JSON file. The file is removed on exit,
        whether or not the body raised.
    """
    rendered = render_role_definition(load_role_template(template_path), config.subscription_id)
    definition = json.loads(rendered)
    definition["Name"] = config.custom_role_name

    fd, name = tempfile.mkstemp(prefix="github-actions-network-role-", suffix=".json", dir=scratch_dir)
    path = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as file:
            json.dump(definition, file, indent=4)
        log.debug("Custom role definition written to %s", path)
        yield path
    finally:
        path.unlink(missing_ok=True)
        log.debug("Removed %s", path)

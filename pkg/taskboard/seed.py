"""
Sample workspace loader.

Reads a YAML document with `projects:` and `tasks:` lists and creates
them through the store's public operations. Projects carry a `key` that
tasks use in their `project` field, since real ids are minted on create.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from .errors import ConfigError, ValidationError
from .store import EntityStore

logger = logging.getLogger(__name__)

SAMPLE_WORKSPACE = Path(__file__).parent / "sample_workspace.yaml"


def read_seed(path: Union[str, Path]) -> Dict[str, Any]:
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read seed file {path}: {e}")
    if not isinstance(raw, dict):
        raise ConfigError(f"Seed file {path} must contain a mapping")
    return raw


async def load_seed(store: EntityStore, path: Union[str, Path] = SAMPLE_WORKSPACE) -> Dict[str, str]:
    """
    Create the seed projects and tasks.

    Returns:
        dict mapping each seed key (projects and tasks) to its new id.
    """
    raw = read_seed(path)
    ids: Dict[str, str] = {}

    for item in raw.get("projects", []) or []:
        data = dict(item)
        key = data.pop("key", None)
        project = await store.create_project(data)
        if key:
            ids[key] = project.id

    for item in raw.get("tasks", []) or []:
        data = dict(item)
        key = data.pop("key", None)
        ref = data.pop("project", None)
        if ref is not None:
            if ref not in ids:
                raise ValidationError(f"Seed task '{data.get('title', '')}' references unknown project '{ref}'")
            data["project_id"] = ids[ref]
        task = await store.create_task(data)
        if key:
            ids[key] = task.id

    logger.info(
        f"Seeded {len(raw.get('projects', []) or [])} project(s), "
        f"{len(raw.get('tasks', []) or [])} task(s) from {path}"
    )
    return ids

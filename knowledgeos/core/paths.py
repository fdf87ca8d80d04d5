# knowledgeos/core/paths.py
from __future__ import annotations
from pathlib import Path
from typing import Optional, Union
import logging

from knowledgeos.core.config import get_config
from knowledgeos.core.manifest import manifest_path, save_manifest
from knowledgeos.core.models import Manifest
from knowledgeos.core.rules import RULES_FILE_HEADER, RULES_FILENAME

logger = logging.getLogger(__name__)

# Sub-directories created alongside the top-level topic documents
LAYOUT_DIRS = ("topics", "patterns")


def knowledge_home() -> Path:
    """Configured knowledge store root"""
    return get_config().resolved_knowledge_dir


def init_knowledge_dir(root: Union[str, Path]) -> Path:
    """Create the directory layout, empty manifest and rules file, and the version log"""
    from knowledgeos.backends.git_log import GitVersionLog

    root = Path(root)
    for d in (root, *(root / name for name in LAYOUT_DIRS)):
        d.mkdir(parents=True, exist_ok=True)

    if not manifest_path(root).exists():
        save_manifest(root, Manifest())

    rules_file = root / RULES_FILENAME
    if not rules_file.exists():
        rules_file.write_text(RULES_FILE_HEADER + "rules: []\n", encoding="utf-8")

    config = get_config()
    GitVersionLog(root, user_name=config.git_user_name, user_email=config.git_user_email).init()
    logger.info(f"Knowledge directory ready: {root}")
    return root


def ensure_knowledge_dir(root: Optional[Union[str, Path]] = None) -> Path:
    """Initialize the knowledge directory on first use, return its path"""
    root = Path(root) if root is not None else knowledge_home()
    if not root.exists():
        init_knowledge_dir(root)
    return root

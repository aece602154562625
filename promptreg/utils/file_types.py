"""Content type detection and target path routing.

Every scope places bundle content with the same layout under its own base
directory (``.github/`` for the repository scope):

    prompts/<id>.prompt.md
    agents/<id>.agent.md
    instructions/<id>.instructions.md
    skills/<id>/...
"""

import re
from pathlib import PurePosixPath

from promptreg.config.schemas import ContentEntry, ContentType

REPOSITORY_BASE_DIR = ".github"

TARGET_DIRECTORIES: dict[ContentType, str] = {
    "prompt": "prompts",
    "agent": "agents",
    "instruction": "instructions",
    "skill": "skills",
}

FILE_EXTENSIONS: dict[ContentType, str] = {
    "prompt": ".prompt.md",
    "agent": ".agent.md",
    "instruction": ".instructions.md",
    "skill": "",  # Skills are directories
}

_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def normalize_content_id(content_id: str | int | float) -> str:
    """Normalize a content id to a string that is safe in file names.

    Args:
        content_id: The id from the manifest (YAML may yield numbers)

    Returns:
        The id with every character outside ``[A-Za-z0-9_-]`` replaced by ``-``
    """
    return _UNSAFE_ID_CHARS.sub("-", str(content_id))


def determine_content_type(file_name: str, tags: list[str] | None = None) -> ContentType:
    """Infer the content type of a file.

    Detection order: file extension, the special SKILL.md name, tags,
    a file name containing "instructions", then ``prompt``.

    Args:
        file_name: File name or path from the manifest
        tags: Optional tags from the manifest entry

    Returns:
        The detected content type
    """
    base_name = PurePosixPath(file_name.replace("\\", "/")).name.lower()

    if base_name.endswith(".prompt.md"):
        return "prompt"
    if base_name.endswith(".instructions.md"):
        return "instruction"
    if base_name.endswith(".agent.md"):
        return "agent"
    if base_name == "skill.md":
        return "skill"

    lower_tags = [tag.lower() for tag in tags or []]
    if "instructions" in lower_tags or "instruction" in lower_tags:
        return "instruction"
    if "agent" in lower_tags:
        return "agent"
    if "skill" in lower_tags:
        return "skill"

    if "instructions" in base_name:
        return "instruction"

    return "prompt"


def resolve_content_type(entry: ContentEntry) -> ContentType:
    """Get the explicit type of an entry, or infer it."""
    return entry.type or determine_content_type(entry.file, entry.tags)


def get_target_file_name(content_id: str, content_type: ContentType) -> str:
    """Get the installed file name for a content id.

    Skills are installed as directories named after the id.
    """
    return f"{content_id}{FILE_EXTENSIONS[content_type]}"


def get_target_relative_path(entry: ContentEntry, base_dir: str = REPOSITORY_BASE_DIR) -> str:
    """Get the installed path of an entry, relative to the scope root.

    This is the single mapping from manifest entries to installed paths;
    install, uninstall, and commit-mode switching all go through it.

    Args:
        entry: The manifest content entry
        base_dir: Base directory within the scope root ("" for none)

    Returns:
        POSIX-style relative path (a directory path for skills)
    """
    content_type = resolve_content_type(entry)
    content_id = normalize_content_id(entry.id)
    parts = [base_dir] if base_dir else []
    parts += [TARGET_DIRECTORIES[content_type], get_target_file_name(content_id, content_type)]
    return str(PurePosixPath(*parts))


def get_skill_root(relative_path: str, base_dir: str = REPOSITORY_BASE_DIR) -> str | None:
    """Get the skill directory that contains a path, if any.

    Args:
        relative_path: A path relative to the scope root
        base_dir: Base directory within the scope root

    Returns:
        e.g. ``.github/skills/my-skill`` for ``.github/skills/my-skill/SKILL.md``
    """
    parts = PurePosixPath(relative_path.replace("\\", "/")).parts
    prefix = PurePosixPath(base_dir).parts if base_dir else ()
    skills_index = len(prefix)
    if (
        len(parts) > skills_index + 1
        and parts[:skills_index] == prefix
        and parts[skills_index] == TARGET_DIRECTORIES["skill"]
    ):
        return str(PurePosixPath(*parts[: skills_index + 2]))
    return None


def collapse_skill_paths(relative_paths: list[str], base_dir: str = REPOSITORY_BASE_DIR) -> list[str]:
    """Replace all files under one skill directory by the directory itself.

    Args:
        relative_paths: Installed file paths relative to the scope root
        base_dir: Base directory within the scope root

    Returns:
        Ordered, de-duplicated paths suitable for exclude entries
    """
    collapsed: list[str] = []
    for path in relative_paths:
        skill_root = get_skill_root(path, base_dir)
        item = skill_root if skill_root is not None else path
        if item not in collapsed:
            collapsed.append(item)
    return collapsed

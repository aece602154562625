"""Configuration file parsing utilities."""

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from promptreg.config.schemas import BundleManifest, LockFile, Settings, UserIndex
from promptreg.errors import ConfigError, LockfileCorruptError, NotFoundError
from promptreg.utils.filesystem import atomic_write_text

LOCKFILE_NAME = "promptreg.lock.json"
MANIFEST_NAME = "deployment-manifest.yml"
SETTINGS_NAME = "config.yaml"
USER_INDEX_NAME = "installed.json"


def load_json(path: Path) -> dict[str, Any]:
    """Load and parse a JSON file.

    Args:
        path: Path to the JSON file

    Returns:
        Parsed JSON as a dictionary

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    if not path.exists():
        raise ConfigError(f"File not found: {path}", path)

    try:
        with open(path, encoding="utf-8") as f:
            result = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}", path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", path) from e

    if not isinstance(result, dict):
        raise ConfigError(f"JSON file must contain an object: {path}", path)
    return result


def save_json(path: Path, data: dict[str, Any], indent: int = 2) -> None:
    """Atomically save data to a JSON file.

    Args:
        path: Path to write to
        data: Data to serialize
        indent: JSON indentation level
    """
    atomic_write_text(path, json.dumps(data, indent=indent) + "\n")


def load_yaml(path: Path) -> dict[str, Any]:
    """Load and parse a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Parsed YAML as a dictionary

    Raises:
        ConfigError: If the file cannot be read or parsed
    """
    if not path.exists():
        raise ConfigError(f"File not found: {path}", path)

    try:
        with open(path, encoding="utf-8") as f:
            result = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", path) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", path) from e

    if result is None:
        return {}
    if not isinstance(result, dict):
        raise ConfigError(f"YAML file must contain a mapping: {path}", path)
    return result


def save_yaml(path: Path, data: dict[str, Any]) -> None:
    """Atomically save data to a YAML file.

    Args:
        path: Path to write to
        data: Data to serialize
    """
    content = yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    atomic_write_text(path, content)


def load_lockfile(lock_path: Path) -> LockFile | None:
    """Load a lockfile if it exists.

    Args:
        lock_path: Path to promptreg.lock.json

    Returns:
        Parsed LockFile, or None if the file does not exist

    Raises:
        LockfileCorruptError: If the file exists but cannot be read or parsed
    """
    if not lock_path.exists():
        return None

    try:
        data = load_json(lock_path)
    except ConfigError as e:
        raise LockfileCorruptError(f"Corrupt lockfile {lock_path}: {e}", lock_path) from e

    try:
        return LockFile.model_validate(data)
    except ValidationError as e:
        raise LockfileCorruptError(f"Invalid lockfile {lock_path}: {e}", lock_path) from e


def save_lockfile(lock_path: Path, lockfile: LockFile) -> None:
    """Atomically write a lockfile.

    Args:
        lock_path: Path to promptreg.lock.json
        lockfile: LockFile to save
    """
    save_json(lock_path, lockfile.to_document())


def load_bundle_manifest(bundle_dir: Path) -> BundleManifest:
    """Load the deployment manifest of an extracted bundle.

    Args:
        bundle_dir: Path to the extracted bundle directory

    Returns:
        Parsed BundleManifest

    Raises:
        NotFoundError: If the manifest does not exist
        ConfigError: If the manifest is invalid
    """
    manifest_path = bundle_dir / MANIFEST_NAME
    if not manifest_path.exists():
        raise NotFoundError(f"No {MANIFEST_NAME} found in {bundle_dir}")

    data = load_yaml(manifest_path)
    try:
        return BundleManifest.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid bundle manifest: {e}", manifest_path) from e


def load_settings(home: Path) -> Settings:
    """Load user settings from <home>/config.yaml.

    Args:
        home: The promptreg home directory

    Returns:
        Parsed Settings, or defaults if the file does not exist

    Raises:
        ConfigError: If the file exists but is invalid
    """
    settings_path = home / SETTINGS_NAME
    if not settings_path.exists():
        return Settings()

    data = load_yaml(settings_path)
    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {e}", settings_path) from e


def save_settings(home: Path, settings: Settings) -> None:
    """Save user settings to <home>/config.yaml."""
    save_yaml(home / SETTINGS_NAME, settings.model_dump(exclude_defaults=True))


def load_user_index(index_path: Path) -> UserIndex:
    """Load the per-user installation index, or an empty one.

    Raises:
        ConfigError: If the file exists but is invalid
    """
    if not index_path.exists():
        return UserIndex()

    data = load_json(index_path)
    try:
        return UserIndex.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid installation index: {e}", index_path) from e


def save_user_index(index_path: Path, index: UserIndex) -> None:
    """Atomically save the per-user installation index."""
    save_json(index_path, index.model_dump(mode="json"))


def find_repository_root(start_path: Path | None = None) -> Path | None:
    """Find the repository root by looking for a .git entry.

    Args:
        start_path: Directory to start searching from (defaults to cwd)

    Returns:
        Path to repository root, or None if not found
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()
    while True:
        if (current / ".git").exists():
            return current
        if current == current.parent:
            return None
        current = current.parent

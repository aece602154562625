"""Shared fixtures for promptreg tests."""

import shutil
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
import yaml

from promptreg.config.schemas import Settings
from promptreg.core.cache import BundleCache
from promptreg.core.lockfile import LockfileStore
from promptreg.core.manager import BundleManager
from promptreg.core.user_index import UserIndexStore

BundleFactory = Callable[..., Path]


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory."""
    path = Path(tempfile.mkdtemp(prefix="promptreg_test_")).resolve()
    yield path
    if path.exists():
        shutil.rmtree(path)


@pytest.fixture
def repo_root(temp_dir: Path) -> Path:
    """Create a repository directory with a .git/info directory."""
    root = temp_dir / "repo"
    (root / ".git" / "info").mkdir(parents=True)
    return root


@pytest.fixture
def user_home(temp_dir: Path) -> Path:
    """Create a promptreg home directory."""
    home = temp_dir / "home"
    home.mkdir()
    return home


@pytest.fixture
def bundles_dir(temp_dir: Path) -> Path:
    """Directory that sample bundles are written into."""
    path = temp_dir / "bundles"
    path.mkdir()
    return path


@pytest.fixture
def make_bundle(bundles_dir: Path) -> BundleFactory:
    """Factory that writes an extracted bundle and returns its directory.

    By default the bundle ships one prompt, one instruction file, and one
    skill with a nested resource file.
    """

    def _make(
        bundle_id: str = "test-bundle",
        version: str = "1.0.0",
        prompts: list[dict] | None = None,
        files: dict[str, str] | None = None,
        directory: str | None = None,
    ) -> Path:
        bundle_dir = bundles_dir / (directory or bundle_id)
        bundle_dir.mkdir(parents=True, exist_ok=True)

        if prompts is None:
            prompts = [
                {"id": "review", "file": "prompts/review.prompt.md"},
                {"id": "style", "file": "instructions/style.instructions.md"},
                {"id": "testing", "file": "skills/testing/SKILL.md", "type": "skill"},
            ]
        if files is None:
            files = {
                "prompts/review.prompt.md": f"# Review ({version})\n",
                "instructions/style.instructions.md": "Use black.\n",
                "skills/testing/SKILL.md": "# Testing skill\n",
                "skills/testing/scripts/run.sh": "#!/bin/sh\npytest\n",
            }

        for relative, content in files.items():
            path = bundle_dir / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)

        manifest = {"id": bundle_id, "version": version, "name": bundle_id, "prompts": prompts}
        (bundle_dir / "deployment-manifest.yml").write_text(yaml.safe_dump(manifest))
        return bundle_dir

    return _make


@pytest.fixture
def manager(repo_root: Path, user_home: Path) -> BundleManager:
    """Bundle manager for the test repository."""
    return BundleManager(
        repo_root,
        user_home,
        LockfileStore(repo_root, generated_by="promptreg@test"),
        UserIndexStore(user_home),
        BundleCache(user_home / "bundles"),
        Settings(),
    )


@pytest.fixture
def exclude_file(repo_root: Path) -> Path:
    """Path of the repository's .git/info/exclude file."""
    return repo_root / ".git" / "info" / "exclude"

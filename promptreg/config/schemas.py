"""Pydantic schemas for promptreg documents.

This module defines the data models for:
- deployment-manifest.yml (bundle manifest, read-only input)
- promptreg.lock.json (repository lockfile)
- installed.json (per-user installation index)
- config.yaml (user settings)
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# =============================================================================
# Common Types
# =============================================================================

Scope = Literal["user", "workspace", "repository"]
CommitMode = Literal["commit", "local-only"]
ContentType = Literal["prompt", "agent", "instruction", "skill"]

SCOPES: tuple[Scope, ...] = ("user", "workspace", "repository")
USER_SCOPES: tuple[Scope, ...] = ("user", "workspace")
COMMIT_MODES: tuple[CommitMode, ...] = ("commit", "local-only")

LOCKFILE_SCHEMA_URL = (
    "https://raw.githubusercontent.com/promptreg/promptreg/main/schemas/lockfile.schema.json"
)
LOCKFILE_VERSION = "1.0.0"


# =============================================================================
# Bundle Manifest Models
# =============================================================================


class ContentEntry(BaseModel):
    """A single prompt, agent, instruction, or skill shipped by a bundle."""

    model_config = ConfigDict(extra="ignore")

    id: str
    file: str  # Relative to the bundle root; a directory for skills
    type: ContentType | None = None  # Inferred from file name and tags when absent
    name: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Any:
        """YAML parses ids like ``1.0`` as numbers."""
        if isinstance(value, int | float):
            return str(value)
        return value

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value: Any) -> Any:
        if value == "instructions":
            return "instruction"
        return value


class BundleManifest(BaseModel):
    """Deployment manifest found at the root of an extracted bundle."""

    model_config = ConfigDict(extra="ignore")

    id: str
    version: str
    name: str | None = None
    author: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    prompts: list[ContentEntry] = Field(default_factory=list)

    @field_validator("version", mode="before")
    @classmethod
    def coerce_version(cls, value: Any) -> Any:
        if isinstance(value, int | float):
            return str(value)
        return value


# =============================================================================
# Lockfile Models
# =============================================================================


class LockedFile(BaseModel):
    """A file written by a bundle, relative to the repository root."""

    model_config = ConfigDict(extra="allow")

    path: str
    checksum: str


class LockedBundle(BaseModel):
    """A repository-scope bundle entry in the lockfile."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    version: str
    source_id: str = Field(alias="sourceId")
    source_type: str = Field(alias="sourceType")
    installed_at: str = Field(alias="installedAt")
    commit_mode: CommitMode = Field(default="commit", alias="commitMode")
    files: list[LockedFile] = Field(default_factory=list)


class SourceDescriptor(BaseModel):
    """Enough information to re-resolve a bundle's origin."""

    model_config = ConfigDict(extra="allow")

    type: str
    url: str


class LockFile(BaseModel):
    """The promptreg.lock.json document.

    Unknown top-level keys are kept on the model so that a read-modify-write
    cycle never drops them.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    schema_: str = Field(default=LOCKFILE_SCHEMA_URL, alias="$schema")
    version: str = LOCKFILE_VERSION
    generated_at: str = Field(alias="generatedAt")
    generated_by: str = Field(alias="generatedBy")
    bundles: dict[str, LockedBundle] = Field(default_factory=dict)
    sources: dict[str, SourceDescriptor] = Field(default_factory=dict)
    profiles: dict[str, Any] | None = None
    hubs: dict[str, Any] | None = None

    def to_document(self) -> dict[str, Any]:
        """Serialize using the on-disk key names."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    def missing_source_ids(self) -> list[str]:
        """Source ids referenced by bundle entries but absent from ``sources``."""
        referenced = {entry.source_id for entry in self.bundles.values()}
        return sorted(referenced - set(self.sources))


# =============================================================================
# Installed Bundle / Per-User Index Models
# =============================================================================


class InstalledBundle(BaseModel):
    """A bundle installed at some scope, as reported to callers."""

    bundle_id: str
    version: str
    scope: Scope
    installed_at: str
    source_id: str = ""
    source_type: str = ""
    source_url: str = ""  # User and workspace scopes; the lockfile keeps sources separately
    commit_mode: CommitMode | None = None  # Repository scope only
    install_path: str = ""
    files: list[str] = Field(default_factory=list)
    files_missing: bool = False


class UserIndex(BaseModel):
    """Index of user- and workspace-scope installations.

    Stored at <home>/installed.json.
    """

    version: str = "1.0"
    bundles: list[InstalledBundle] = Field(default_factory=list)

    def find(self, bundle_id: str, scope: Scope) -> InstalledBundle | None:
        """Get the entry for a bundle at a scope."""
        for entry in self.bundles:
            if entry.bundle_id == bundle_id and entry.scope == scope:
                return entry
        return None

    def upsert(self, entry: InstalledBundle) -> None:
        """Insert an entry, replacing any entry with the same key."""
        self.remove(entry.bundle_id, entry.scope)
        self.bundles.append(entry)

    def remove(self, bundle_id: str, scope: Scope) -> InstalledBundle | None:
        """Remove an entry and return it."""
        existing = self.find(bundle_id, scope)
        if existing is not None:
            self.bundles.remove(existing)
        return existing


# =============================================================================
# Settings
# =============================================================================


class Settings(BaseModel):
    """User settings loaded from <home>/config.yaml."""

    default_scope: Scope = "repository"
    default_commit_mode: CommitMode = "commit"
    sources: dict[str, SourceDescriptor] = Field(default_factory=dict)
    hubs: dict[str, SourceDescriptor] = Field(default_factory=dict)

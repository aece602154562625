"""Tests for promptreg.utils.source_id module."""

import re

from promptreg.utils.source_id import (
    generate_hub_key,
    generate_source_id,
    is_legacy_hub_source_id,
    normalize_url,
)


class TestNormalizeUrl:
    """Tests for normalize_url()."""

    def test_strips_scheme_and_lowercases_host(self):
        """Scheme dropped, host lowered, path case kept."""
        assert normalize_url("HTTPS://GitHub.com/Owner/Repo/") == "github.com/Owner/Repo"

    def test_file_url(self):
        """File URLs keep only the path."""
        assert normalize_url("file:///tmp/bundles/") == "/tmp/bundles"


class TestGenerateSourceId:
    """Tests for generate_source_id()."""

    def test_format(self):
        """Ids are '{type}-{12 hex chars}'."""
        source_id = generate_source_id("github", "https://github.com/org/repo")

        assert re.fullmatch(r"github-[0-9a-f]{12}", source_id)

    def test_equivalent_urls_match(self):
        """Scheme, host case, and trailing slash don't change the id."""
        a = generate_source_id("github", "https://GitHub.com/org/repo/")
        b = generate_source_id("github", "http://github.com/org/repo")

        assert a == b

    def test_master_is_main(self):
        """'master', 'main', and no branch are the same."""
        url = "https://github.com/org/repo"

        assert generate_source_id("github", url, "master") == generate_source_id("github", url)
        assert generate_source_id("github", url, "main") == generate_source_id("github", url)

    def test_branch_and_path_matter(self):
        """Different branches or collection paths give different ids."""
        url = "https://github.com/org/repo"
        base = generate_source_id("github", url)

        assert generate_source_id("github", url, "dev") != base
        assert generate_source_id("github", url, collections_path="other") != base

    def test_type_matters(self):
        """Different source types give different ids."""
        url = "https://example.com/bundles"

        assert generate_source_id("http", url) != generate_source_id("local", url)


class TestHubKey:
    """Tests for generate_hub_key() and is_legacy_hub_source_id()."""

    def test_main_branch(self):
        """Main branch keys are a bare hash."""
        assert re.fullmatch(r"[0-9a-f]{12}", generate_hub_key("https://github.com/org/hub"))

    def test_other_branch_suffix(self):
        """Other branches are appended."""
        assert generate_hub_key("https://github.com/org/hub", "dev").endswith("-dev")

    def test_legacy_format(self):
        """Detects the old hub-prefixed format."""
        assert is_legacy_hub_source_id("hub-myhub-source1")
        assert not is_legacy_hub_source_id("github-0123456789ab")

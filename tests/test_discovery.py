"""Tests for template discovery."""
from pathlib import Path

from dotsecrets.core.discovery import (
    default_output_path,
    find_common_templates,
    find_templates,
    has_placeholders,
    is_template_file,
    looks_binary,
)


class TestPaths:
    """Test template naming rules."""

    def test_default_output_path(self):
        assert default_output_path(Path("config.yml.template")) == Path("config.yml")
        assert default_output_path(Path("/a/credentials.tmpl")) == Path("/a/credentials")
        assert default_output_path(Path("app.tpl")) == Path("app")

    def test_non_template_is_processed_in_place(self):
        assert default_output_path(Path("settings.conf")) == Path("settings.conf")

    def test_is_template_file(self):
        assert is_template_file(Path("x.template"))
        assert not is_template_file(Path("x.template.bak"))


class TestBinaryDetection:
    """Test text/binary classification."""

    def test_text(self):
        assert not looks_binary("héllo ${API_KEY}\n".encode("utf-8"))

    def test_nul_byte(self):
        assert looks_binary(b"abc\x00def")

    def test_invalid_utf8(self):
        assert looks_binary(b"\xff\xfe\xfa")


class TestFindTemplates:
    """Test directory scanning."""

    def _tree(self, root):
        (root / "nested").mkdir(parents=True)
        (root / "a.template").write_text("${API_KEY}")
        (root / "b.conf").write_text("%%DB_PW%%")
        (root / "c.conf").write_text("plain")
        (root / "nested" / "d.tmpl").write_text("{{API_KEY}}")
        (root / "nested" / "e.bin").write_bytes(b"\x00${API_KEY}")

    def test_recursive(self, tmp_path):
        self._tree(tmp_path / "t")
        found = find_templates(tmp_path / "t")
        assert [p.name for p in found] == ["a.template", "d.tmpl"]

    def test_non_recursive(self, tmp_path):
        self._tree(tmp_path / "t")
        assert [p.name for p in find_templates(tmp_path / "t", recursive=False)] == ["a.template"]

    def test_force_includes_files_with_placeholders(self, tmp_path):
        self._tree(tmp_path / "t")
        names = [p.name for p in find_templates(tmp_path / "t", force=True)]
        assert names == ["a.template", "b.conf", "d.tmpl"]

    def test_has_placeholders(self, tmp_path):
        self._tree(tmp_path / "t")
        assert has_placeholders(tmp_path / "t" / "b.conf")
        assert not has_placeholders(tmp_path / "t" / "c.conf")
        assert not has_placeholders(tmp_path / "t" / "nested" / "e.bin")
        assert not has_placeholders(tmp_path / "t" / "missing")

    def test_find_common_templates(self, tmp_path):
        home = tmp_path / "h"
        (home / ".aws").mkdir(parents=True)
        (home / ".aws" / "credentials.template").write_text("${AWS_ACCESS_KEY_ID}")
        (home / "projects").mkdir()
        (home / "projects" / "ignored.template").write_text("${API_KEY}")

        found = find_common_templates(home)
        assert found == [home / ".aws" / "credentials.template"]

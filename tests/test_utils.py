"""
Tests for utility helpers.
"""

import pytest

from migration_auditor.utils import (
    count_files,
    extract_zip,
    format_duration,
    is_repo_slug,
    job_name_for_repo,
    tree_checksums,
    write_csv,
)


class TestRepoHelpers:

    def test_job_name_for_repo(self):
        assert job_name_for_repo("acme/api") == "acme-api"

    @pytest.mark.parametrize("repo, expected", [
        ("acme/api", True),
        ("acme", False),
        ("acme/", False),
        ("/api", False),
        ("a/b/c", False),
    ])
    def test_is_repo_slug(self, repo, expected):
        assert is_repo_slug(repo) is expected


class TestArchives:

    def test_extract_and_count(self, zip_file, tmp_path):
        archive = zip_file({"a.txt": b"a", "dir/b.txt": b"b", "dir/sub/c.txt": b"c"})
        dest = tmp_path / "out"

        assert extract_zip(archive, dest) == 3
        assert count_files(dest) == 3

    def test_path_traversal_rejected(self, zip_file, tmp_path):
        archive = zip_file({"../evil.txt": b"x"})

        with pytest.raises(ValueError):
            extract_zip(archive, tmp_path / "out")
        assert not (tmp_path / "evil.txt").exists()

    def test_count_missing_dir(self, tmp_path):
        assert count_files(tmp_path / "missing") == 0

    def test_tree_checksums_ignore_paths(self, tmp_path):
        (tmp_path / "one").mkdir()
        (tmp_path / "two" / "nested").mkdir(parents=True)
        (tmp_path / "one" / "x.bin").write_bytes(b"data")
        (tmp_path / "two" / "nested" / "y.bin").write_bytes(b"data")

        assert tree_checksums(tmp_path / "one") == tree_checksums(tmp_path / "two")


class TestFormatting:

    @pytest.mark.parametrize("ms, text", [
        (0, "0s"),
        (59_999, "59s"),
        (65_000, "1m 05s"),
        (3_725_000, "1h 02m"),
    ])
    def test_format_duration(self, ms, text):
        assert format_duration(ms) == text

    def test_write_csv_uses_lf(self, tmp_path):
        path = tmp_path / "out.csv"

        count = write_csv(path, ("a", "b"), [(1, 2), (3, 4)])

        assert count == 2
        assert path.read_bytes() == b"a,b\n1,2\n3,4\n"

"""Tests for worker_inline.ingest.file_collector — iterative directory walk."""

import os
import types
from pathlib import Path

import pytest

from worker_inline.ingest.file_collector import FileCollector, absolute_path
from worker_inline.utils.errors import CollectionError


@pytest.fixture
def tree(tmp_path):
    """A small nested source tree."""
    (tmp_path / "a.js").write_text("a", encoding="utf-8")
    (tmp_path / "styles.css").write_text("b", encoding="utf-8")
    (tmp_path / "lib").mkdir()
    (tmp_path / "lib" / "x.worker.js").write_text("c", encoding="utf-8")
    (tmp_path / "lib" / "deep" / "deeper").mkdir(parents=True)
    (tmp_path / "lib" / "deep" / "deeper" / "z.js").write_text("d", encoding="utf-8")
    (tmp_path / "empty").mkdir()
    return tmp_path


class TestCollect:
    def test_collects_all_files_recursively(self, tree):
        files = FileCollector(tree).collect()
        names = sorted(p.name for p in files)
        assert names == ["a.js", "styles.css", "x.worker.js", "z.js"]

    def test_directories_never_returned(self, tree):
        files = FileCollector(tree).collect()
        assert all(p.is_file() for p in files)

    def test_no_extension_filtering(self, tree):
        files = FileCollector(tree).collect()
        assert any(p.suffix == ".css" for p in files)

    def test_paths_are_absolute(self, tree):
        files = FileCollector(tree).collect()
        assert all(p.is_absolute() for p in files)

    def test_result_sorted(self, tree):
        files = FileCollector(tree).collect()
        assert files == sorted(files)

    def test_relative_root_made_absolute(self, tree, monkeypatch):
        monkeypatch.chdir(tree.parent)
        collector = FileCollector(tree.name)
        assert collector.root == tree
        assert len(collector.collect()) == 4

    def test_empty_root(self, tmp_path):
        assert FileCollector(tmp_path).collect() == []

    def test_ignore_dirs_pruned(self, tree):
        (tree / "node_modules" / "pkg").mkdir(parents=True)
        (tree / "node_modules" / "pkg" / "index.js").write_text("x", encoding="utf-8")
        files = FileCollector(tree, ignore_dirs=["node_modules"]).collect()
        assert not any("node_modules" in p.parts for p in files)

    def test_dirs_visited_counted(self, tree):
        collector = FileCollector(tree)
        collector.collect()
        # root, lib, lib/deep, lib/deep/deeper, empty
        assert collector.dirs_visited == 5

    def test_deep_tree_does_not_recurse(self, tmp_path):
        current = tmp_path
        for i in range(200):
            current = current / f"d{i}"
        current.mkdir(parents=True)
        (current / "leaf.js").write_text("x", encoding="utf-8")
        files = FileCollector(tmp_path).collect()
        assert [p.name for p in files] == ["leaf.js"]

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_symlinked_directory_not_followed(self, tree):
        try:
            os.symlink(tree / "lib", tree / "loop", target_is_directory=True)
        except OSError:
            pytest.skip("cannot create symlink")
        files = FileCollector(tree).collect()
        assert not any("loop" in p.parts for p in files)


class TestIterFiles:
    def test_lazy_iterator(self, tree):
        it = FileCollector(tree).iter_files()
        assert isinstance(it, types.GeneratorType)
        first = next(it)
        assert first.is_file()

    def test_iterator_not_restartable(self, tree):
        it = FileCollector(tree).iter_files()
        assert len(list(it)) == 4
        assert list(it) == []


class TestCollectionErrors:
    def test_missing_root_is_fatal(self, tmp_path):
        with pytest.raises(CollectionError) as exc_info:
            FileCollector(tmp_path / "nope").collect()
        assert "does not exist" in str(exc_info.value)

    def test_file_root_is_fatal(self, tmp_path):
        f = tmp_path / "file.js"
        f.write_text("x", encoding="utf-8")
        with pytest.raises(CollectionError):
            FileCollector(f).collect()

    def test_listing_failure_is_fatal(self, tree, monkeypatch):
        real_scandir = os.scandir

        def flaky_scandir(path):
            if Path(path).name == "lib":
                raise PermissionError(13, "Permission denied")
            return real_scandir(path)

        monkeypatch.setattr("worker_inline.ingest.file_collector.os.scandir", flaky_scandir)
        with pytest.raises(CollectionError) as exc_info:
            FileCollector(tree).collect()
        assert exc_info.value.path.name == "lib"


class TestAbsolutePath:
    def test_normalizes_dot_segments(self, tmp_path):
        p = absolute_path(tmp_path / "a" / ".." / "b" / "./c.js")
        assert p == tmp_path / "b" / "c.js"

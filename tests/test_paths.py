import os

import pytest

from mdhost.errors import TraversalError
from mdhost.paths import is_located_in, resolve


def test_resolve_stays_inside_root(tmp_path):
    assert resolve(tmp_path, "") == tmp_path
    assert resolve(tmp_path, "blog/post") == tmp_path / "blog" / "post"
    assert resolve(tmp_path, "blog/../about") == tmp_path / "about"
    assert resolve(tmp_path, "./a/./b/") == tmp_path / "a" / "b"


@pytest.mark.parametrize(
    "request_path",
    [
        "..",
        "../x",
        "a/../../x",
        "a/b/../../../x",
        "/etc/passwd",
        "blog\0/post",
        "index.md\0.html",
    ],
)
def test_resolve_rejects_escapes(tmp_path, request_path):
    root = tmp_path / "root"
    root.mkdir()
    with pytest.raises(TraversalError) as excinfo:
        resolve(root, request_path)
    assert excinfo.value.request_path == request_path


def test_resolve_rejects_sibling_with_common_prefix(tmp_path):
    root = tmp_path / "site"
    root.mkdir()
    (tmp_path / "site2").mkdir()
    with pytest.raises(TraversalError):
        resolve(root, "../site2/secret")


def test_resolve_rejects_symlink_escape(tmp_path):
    root = tmp_path / "root"
    root.mkdir()
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.txt").write_text("s", encoding="utf-8")
    os.symlink(outside, root / "link")
    with pytest.raises(TraversalError):
        resolve(root, "link/secret.txt")


def test_is_located_in_compares_components(tmp_path):
    assert is_located_in(tmp_path / "a" / "b", tmp_path / "a")
    assert is_located_in(tmp_path / "a", tmp_path / "a")
    assert not is_located_in(tmp_path / "ab", tmp_path / "a")
    assert not is_located_in(tmp_path / "a" / ".." / "b", tmp_path / "a")

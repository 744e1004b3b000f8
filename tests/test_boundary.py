import os
from pathlib import Path

from guard.boundary import VaultBoundary
from guard.types import PathAccessType


def make_boundary(tmp_path: Path) -> VaultBoundary:
    vault = tmp_path / "vault"
    export = tmp_path / "export"
    context = vault / ".context"
    for d in (vault, export, context, tmp_path / "shared"):
        d.mkdir(parents=True, exist_ok=True)
    return VaultBoundary(
        vault,
        readwrite_paths=[tmp_path / "shared"],
        context_paths=[context],
        export_paths=[export],
    )


def test_vault_paths(tmp_path: Path):
    boundary = make_boundary(tmp_path)
    assert boundary(str(tmp_path / "vault" / "notes.md")) == PathAccessType.VAULT
    assert boundary("notes.md") == PathAccessType.VAULT
    assert boundary("") == PathAccessType.VAULT


def test_relative_paths_resolve_against_vault(tmp_path: Path):
    boundary = make_boundary(tmp_path)
    assert boundary("../export/out.csv") == PathAccessType.EXPORT
    assert boundary("../shared/a.txt") == PathAccessType.READWRITE
    assert boundary("../../etc/passwd") == PathAccessType.OUTSIDE


def test_outside_paths(tmp_path: Path):
    boundary = make_boundary(tmp_path)
    assert boundary("/etc/hosts") == PathAccessType.OUTSIDE
    assert boundary(str(tmp_path / "vault-other" / "x")) == PathAccessType.OUTSIDE


def test_deepest_root_wins(tmp_path: Path):
    boundary = make_boundary(tmp_path)
    assert boundary(".context/prompt.md") == PathAccessType.CONTEXT


def test_symlinks_are_resolved(tmp_path: Path):
    boundary = make_boundary(tmp_path)
    outside = tmp_path / "outside"
    outside.mkdir()
    os.symlink(outside, tmp_path / "vault" / "link")
    assert boundary("link/secret.txt") == PathAccessType.OUTSIDE


def test_home_expansion(tmp_path: Path, monkeypatch):
    boundary = make_boundary(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "vault"))
    assert boundary("~/notes.md") == PathAccessType.VAULT

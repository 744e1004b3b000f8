from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional, Union

from guard.types import PathAccessType

PathLike = Union[str, Path]


def _real(path: PathLike) -> str:
    return os.path.realpath(os.path.expanduser(str(path)))


def _is_within(path: str, root: str) -> bool:
    if path == root:
        return True
    prefix = root if root.endswith(os.sep) else root + os.sep
    return path.startswith(prefix)


class VaultBoundary:
    """Classifies paths against the vault and the extra allowed directories.

    Relative paths are taken relative to the vault. Symlinks are resolved
    before comparison, so a link inside the vault that points elsewhere is
    classified by its target. When roots nest, the deepest root wins.
    """

    def __init__(
        self,
        vault: PathLike,
        readwrite_paths: Optional[Iterable[PathLike]] = None,
        context_paths: Optional[Iterable[PathLike]] = None,
        export_paths: Optional[Iterable[PathLike]] = None,
    ) -> None:
        self.vault = _real(vault)
        roots: list[tuple[str, PathAccessType]] = [(self.vault, PathAccessType.VAULT)]
        for paths, access in (
            (readwrite_paths, PathAccessType.READWRITE),
            (context_paths, PathAccessType.CONTEXT),
            (export_paths, PathAccessType.EXPORT),
        ):
            for p in paths or []:
                roots.append((_real(p), access))
        self._roots = roots

    def resolve(self, path: str) -> str:
        expanded = os.path.expanduser(path.strip())
        if not os.path.isabs(expanded):
            expanded = os.path.join(self.vault, expanded)
        return os.path.realpath(expanded)

    def get_path_access_type(self, path: str) -> PathAccessType:
        if not path or not path.strip():
            return PathAccessType.VAULT
        resolved = self.resolve(path)
        best: Optional[tuple[int, PathAccessType]] = None
        for root, access in self._roots:
            if _is_within(resolved, root) and (best is None or len(root) > best[0]):
                best = (len(root), access)
        return best[1] if best else PathAccessType.OUTSIDE

    __call__ = get_path_access_type

"""
Storage package: sandboxed path resolution under the upload root.
"""

from imgflow.storage.sandbox import (
    SandboxPath,
    clean_subfolder,
    contains,
    ensure_dir,
    is_traversal,
    safe_resolve,
)

__all__ = [
    'SandboxPath',
    'clean_subfolder',
    'contains',
    'ensure_dir',
    'is_traversal',
    'safe_resolve'
]

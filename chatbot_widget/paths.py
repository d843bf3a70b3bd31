"""
Where the console host keeps its on-disk state.

Only the SQLite key/value store is written to disk.  It goes into an
``Asset/`` directory beside ``main.py``, so the location does not depend
on the directory the host is launched from.
"""

import os

_PACKAGE_DIR: str = os.path.dirname(os.path.abspath(__file__))

#: ``Asset/`` under the repository root (the parent of this package).
ASSET_DIR: str = os.path.join(os.path.dirname(_PACKAGE_DIR), "Asset")


def asset_path(filename: str) -> str:
    """Absolute path of *filename* under :data:`ASSET_DIR`.

    Creates the directory when missing; an unwritable root surfaces as
    ``OSError``, which :class:`~chatbot_widget.storage.SqliteStore` wraps.
    """
    os.makedirs(ASSET_DIR, exist_ok=True)
    return os.path.join(ASSET_DIR, filename)

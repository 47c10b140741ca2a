import json
import os
import tempfile
from pathlib import Path
from typing import List, Optional

import structlog
from pydantic import ValidationError

from ..core import settings
from ..models import Notebook
from .base import StorageBackend

logger = structlog.get_logger(__name__)


class FileStorage(StorageBackend):
    """One JSON document per notebook in a directory"""

    def __init__(self, notebook_dir: str = None):
        self.notebooks_dir = Path(notebook_dir or settings.NOTEBOOK_STORAGE_DIR)
        self.notebooks_dir.mkdir(parents=True, exist_ok=True)

    def _get_file_path(self, notebook_id: str) -> Path:
        # Ids are opaque; keep them from escaping the storage directory
        safe_id = notebook_id.replace("/", "_").replace("\\", "_")
        return self.notebooks_dir / f"{safe_id}.json"

    async def save_notebook(self, notebook: Notebook) -> None:
        """Save a notebook to JSON file"""
        file_path = self._get_file_path(notebook.id)

        # Write to temporary file first (atomic write)
        with tempfile.NamedTemporaryFile(
            mode='w',
            dir=file_path.parent,
            delete=False,
            suffix='.tmp',
            prefix=f'{file_path.stem}_'
        ) as f:
            json.dump(notebook.to_wire(), f, indent=2)
            temp_path = f.name

        os.replace(temp_path, file_path)

    async def load_notebook(self, notebook_id: str) -> Optional[Notebook]:
        """Load a notebook from JSON file"""
        file_path = self._get_file_path(notebook_id)

        if not file_path.exists():
            return None

        with open(file_path, 'r') as f:
            data = json.load(f)

        try:
            return Notebook.model_validate(data)
        except ValidationError as e:
            logger.error("notebook_file_invalid", notebook_id=notebook_id, errors=e.error_count())
            return None

    async def list_notebooks(self) -> List[str]:
        return sorted(f.stem for f in self.notebooks_dir.glob("*.json"))

    async def delete_notebook(self, notebook_id: str) -> None:
        """Delete a notebook file from disk"""
        file_path = self._get_file_path(notebook_id)
        if file_path.exists():
            file_path.unlink()

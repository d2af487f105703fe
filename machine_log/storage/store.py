"""
Durable JSON document storage.

Each document is one JSON file under a root directory.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


class DocumentStore:
    """Key-value store of JSON documents backed by plain files.
    
    Writes go straight to the target file. There is no temp-file-then-rename
    step, so a crash mid-write can leave a corrupt document; read() then
    reports it as absent and callers fall back to fresh-install state.
    """
    
    def __init__(self, root: str):
        """Initialize the store.
        
        Args:
            root: Directory holding the documents
        """
        self.root = Path(root)
    
    def path_for(self, name: str) -> Path:
        return self.root / name
    
    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()
    
    def read(self, name: str) -> Optional[Any]:
        """Read and parse a document.
        
        Args:
            name: Document file name
            
        Returns:
            Parsed JSON value, or None if the document is missing,
            unreadable, not valid JSON, or parses to null
        """
        path = self.path_for(name)
        if not path.is_file():
            return None
        
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable document %s: %s", path, e)
            return None
    
    def write(self, name: str, document: Any) -> None:
        """Serialize and write a document, replacing any previous content.
        
        Raises:
            OSError: If the file cannot be written
        """
        path = self.path_for(name)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(document, f, ensure_ascii=False)

"""
Project file tree that file operations are applied to.

Paths are absolute, ``/``-separated keys into a flat mapping. Folders are plain
entries whose children are found by path prefix.
"""

from __future__ import annotations
import json
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Protocol


logger = logging.getLogger(__name__)


class FileSystemError(RuntimeError):
	"""Raised when a file operation cannot be applied."""


class FileSystem(Protocol):
	def create_file(self, path: str, content: str = "", language: str = "text") -> "FileNode": ...

	def update_file(self, path: str, content: str) -> "FileNode": ...

	def delete_file(self, path: str, recursive: bool = False) -> Dict[str, "FileNode"]: ...

	def rename_file(self, old_path: str, new_name: str) -> "FileNode": ...

	def export_project(self) -> str: ...


def _now() -> str:
	return datetime.utcnow().isoformat()


@dataclass
class FileNode:
	path: str
	name: str
	type: str = "file"
	content: Optional[str] = None
	language: Optional[str] = None
	id: str = field(default_factory=lambda: uuid.uuid4().hex)
	created_at: str = field(default_factory=_now)
	updated_at: str = field(default_factory=_now)


def _basename(path: str) -> str:
	return path.rstrip("/").split("/")[-1] or "untitled"


class InMemoryFileSystem:
	def __init__(self, files: Optional[Mapping[str, str]] = None) -> None:
		self._files: Dict[str, FileNode] = {}
		for path, content in (files or {}).items():
			self.create_file(path, content, _guess_language(path))

	def get_file(self, path: str) -> Optional[FileNode]:
		return self._files.get(path)

	def paths(self) -> List[str]:
		return list(self._files)

	def create_file(self, path: str, content: str = "", language: str = "text") -> FileNode:
		if path in self._files:
			raise FileSystemError(f"File already exists: {path}")
		node = FileNode(path=path, name=_basename(path), content=content, language=language)
		self._files[path] = node
		logger.debug("Created file %s", path)
		return node

	def create_folder(self, path: str) -> FileNode:
		if path in self._files:
			raise FileSystemError(f"Folder already exists: {path}")
		node = FileNode(path=path, name=_basename(path), type="folder")
		self._files[path] = node
		return node

	def update_file(self, path: str, content: str) -> FileNode:
		node = self._files.get(path)
		if node is None:
			raise FileSystemError(f"File not found: {path}")
		if node.type != "file":
			raise FileSystemError(f"Path is not a file: {path}")
		node.content = content
		node.updated_at = _now()
		return node

	def rename_file(self, old_path: str, new_name: str) -> FileNode:
		node = self._files.get(old_path)
		if node is None:
			raise FileSystemError(f"Path not found: {old_path}")
		if not new_name:
			raise FileSystemError("New name is required")
		parts = old_path.split("/")
		parts[-1] = new_name
		new_path = "/".join(parts)
		if new_path in self._files:
			raise FileSystemError(f"Destination already exists: {new_path}")
		node.path = new_path
		node.name = new_name
		node.updated_at = _now()
		self._files[new_path] = node
		del self._files[old_path]
		return node

	def delete_file(self, path: str, recursive: bool = False) -> Dict[str, FileNode]:
		node = self._files.get(path)
		if node is None:
			raise FileSystemError(f"Path not found: {path}")
		removed: Dict[str, FileNode] = {}
		if node.type == "folder":
			prefix = path if path.endswith("/") else path + "/"
			removed = {p: n for p, n in self._files.items() if p == path or p.startswith(prefix)}
			if len(removed) > 1 and not recursive:
				raise FileSystemError(f"Folder is not empty: {path}")
		else:
			removed[path] = node
		for p in removed:
			del self._files[p]
		return removed

	def list_directory(self, dir_path: str) -> List[FileNode]:
		prefix = dir_path if dir_path.endswith("/") else dir_path + "/"
		return [
			node for p, node in self._files.items()
			if p.startswith(prefix) and "/" not in p[len(prefix):]
		]

	def structure(self) -> List[Dict[str, Optional[str]]]:
		return [{"path": n.path, "type": n.type, "language": n.language} for n in self._files.values()]

	def snapshot(self) -> Dict[str, Dict[str, object]]:
		return {p: asdict(n) for p, n in self._files.items()}

	def export_project(self) -> str:
		return json.dumps(self.snapshot(), indent=2)


_LANGUAGES = {
	".py": "python",
	".ts": "typescript",
	".tsx": "typescript",
	".js": "javascript",
	".jsx": "javascript",
	".json": "json",
	".md": "markdown",
	".html": "html",
	".css": "css",
}


def _guess_language(path: str) -> str:
	name = _basename(path)
	dot = name.rfind(".")
	if dot == -1:
		return "text"
	return _LANGUAGES.get(name[dot:].lower(), "text")

import json

import pytest

from guidebot.tutoring import file_ops as gate
from guidebot.tutoring.file_ops import FileOperation, NoPendingOperationsError, apply_batch, parse_batch
from guidebot.tutoring.filesystem import FileSystemError, InMemoryFileSystem
from guidebot.tutoring.session import new_session


class RecordingFileSystem:
	def __init__(self, fail_on=()):
		self.calls = []
		self.fail_on = set(fail_on)

	def _record(self, name, *args):
		self.calls.append((name, *args))
		if name in self.fail_on:
			raise FileSystemError(f"{name} failed")

	def create_file(self, path, content="", language="text"):
		self._record("create_file", path, content, language)

	def update_file(self, path, content):
		self._record("update_file", path, content)

	def delete_file(self, path, recursive=False):
		self._record("delete_file", path, recursive)

	def rename_file(self, old_path, new_name):
		self._record("rename_file", old_path, new_name)

	def export_project(self):
		self._record("export_project")
		return "{}"


def test_parse_batch_accepts_single_object_and_array():
	single = parse_batch({"action": "create", "path": "/a.py", "content": "# notes"})
	many = parse_batch([
		{"action": "rename", "path": "/a.py", "newName": "b.py"},
		{"action": "delete", "path": "/docs", "recursive": True},
	])

	assert single == (FileOperation(action="create", path="/a.py", content="# notes"),)
	assert many[0].new_name == "b.py"
	assert many[1].recursive is True


@pytest.mark.parametrize("value", [[], "create", [{"path": "/a"}], [1, 2]])
def test_parse_batch_rejects_malformed_values(value):
	with pytest.raises(ValueError):
		parse_batch(value)


def test_confirm_applies_operations_in_proposed_order():
	fs = RecordingFileSystem()
	batch = parse_batch([
		{"action": "create", "path": "/src/a.py", "content": "", "language": "python"},
		{"action": "update", "path": "/src/a.py", "content": "# plan"},
		{"action": "rename", "path": "/src/a.py", "newPath": "b.py"},
		{"action": "delete", "path": "/old"},
		{"action": "export"},
	])
	session = gate.propose(new_session(), batch)

	session, entry = gate.confirm(session, fs)

	assert [c[0] for c in fs.calls] == ["create_file", "update_file", "rename_file", "delete_file", "export_project"]
	assert fs.calls[0] == ("create_file", "/src/a.py", "", "python")
	assert fs.calls[2] == ("rename_file", "/src/a.py", "b.py")
	assert [r.status for r in entry.results] == ["ok"] * 5
	assert entry.results[-1].payload == "{}"
	assert session.pending_file_ops is None
	assert session.ops_log == (entry,)


def test_reject_never_touches_the_file_system():
	fs = RecordingFileSystem()
	session = gate.propose(new_session(), parse_batch({"action": "delete", "path": "/src", "recursive": True}))

	session = gate.reject(session)

	assert fs.calls == []
	assert session.pending_file_ops is None
	with pytest.raises(NoPendingOperationsError):
		gate.confirm(session, fs)


def test_propose_replaces_the_pending_batch():
	first = parse_batch({"action": "create", "path": "/one"})
	second = parse_batch({"action": "create", "path": "/two"})

	session = gate.propose(gate.propose(new_session(), first), second)

	assert session.pending_file_ops == second


def test_failures_are_recorded_per_operation_and_do_not_stop_the_batch():
	fs = RecordingFileSystem(fail_on={"update_file"})
	batch = parse_batch([
		{"action": "update", "path": "/missing"},
		{"action": "chmod", "path": "/x"},
		{"action": "create", "path": "/new"},
	])

	entry = apply_batch(batch, fs)

	assert [r.status for r in entry.results] == ["error", "unknown-action", "ok"]
	assert entry.results[0].error == "update_file failed"
	assert [c[0] for c in fs.calls] == ["update_file", "create_file"]


def test_ops_log_entry_serializes_results():
	entry = apply_batch(parse_batch({"action": "create", "path": "/a"}), RecordingFileSystem())

	data = entry.to_dict()

	assert data["ops"] == [{"action": "create", "path": "/a", "status": "ok"}]
	assert "timestamp" in data


def test_in_memory_file_system_semantics():
	fs = InMemoryFileSystem({"/src/app.py": "print('hi')"})

	assert fs.get_file("/src/app.py").language == "python"
	with pytest.raises(FileSystemError):
		fs.create_file("/src/app.py")
	with pytest.raises(FileSystemError):
		fs.update_file("/nope.py", "")

	fs.create_file("/src/util.py", "", "python")
	with pytest.raises(FileSystemError):
		fs.rename_file("/src/util.py", "app.py")
	renamed = fs.rename_file("/src/util.py", "helpers.py")
	assert renamed.path == "/src/helpers.py"
	assert fs.get_file("/src/util.py") is None

	fs.update_file("/src/helpers.py", "# helpers")
	assert fs.get_file("/src/helpers.py").content == "# helpers"

	assert {n.path for n in fs.list_directory("/src")} == {"/src/app.py", "/src/helpers.py"}


def test_folder_delete_requires_recursive_when_not_empty():
	fs = InMemoryFileSystem()
	fs.create_folder("/docs")
	fs.create_file("/docs/readme.md", "# Docs", "markdown")

	with pytest.raises(FileSystemError):
		fs.delete_file("/docs")
	with pytest.raises(FileSystemError):
		fs.update_file("/docs", "x")

	removed = fs.delete_file("/docs", recursive=True)

	assert set(removed) == {"/docs", "/docs/readme.md"}
	assert fs.paths() == []


def test_export_is_a_json_snapshot():
	fs = InMemoryFileSystem({"/a.txt": "alpha"})

	snapshot = json.loads(fs.export_project())

	assert snapshot["/a.txt"]["content"] == "alpha"
	assert snapshot["/a.txt"]["type"] == "file"

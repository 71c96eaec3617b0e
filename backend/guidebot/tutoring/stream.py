"""
Server-sent event reassembly for streamed chat completions.

The gateway answers with an ``text/event-stream`` body where each event is a
line ``data: <json>`` carrying an incremental text delta at
``choices[0].delta.content``, terminated by ``data: [DONE]``. Network chunks
have no alignment with line boundaries, so bytes are buffered until a full line
is available.
"""

from __future__ import annotations
import codecs
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, List, Optional


logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def _delta_from_payload(payload: str) -> Optional[str]:
	"""Parse one data payload and return its text delta.

	Raises ``ValueError`` when the payload is not (yet) valid JSON.
	"""
	data: Any = json.loads(payload)
	try:
		content = data["choices"][0]["delta"]["content"]
	except (KeyError, IndexError, TypeError):
		return None
	return content if isinstance(content, str) and content else None


class StreamReassembler:
	"""Turns raw byte chunks into text deltas, in arrival order."""

	def __init__(self) -> None:
		self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
		self._buffer = ""
		self.done = False
		self.text = ""

	def feed(self, chunk: bytes) -> List[str]:
		if self.done:
			return []
		self._buffer += self._decoder.decode(chunk)
		return self._drain()

	def finish(self) -> List[str]:
		"""Best-effort pass over whatever is left once the transport ended."""
		if self.done:
			return []
		self._buffer += self._decoder.decode(b"", final=True)
		residual, self._buffer = self._buffer, ""
		deltas: List[str] = []
		for raw in residual.split("\n"):
			payload = self._payload_of(raw)
			if payload is None:
				continue
			if payload == DONE_SENTINEL:
				break
			try:
				delta = _delta_from_payload(payload)
			except ValueError:
				logger.debug("Skipping unparsable trailing stream line: %r", raw[:120])
				continue
			if delta:
				deltas.append(delta)
				self.text += delta
		self.done = True
		return deltas

	@staticmethod
	def _payload_of(line: str) -> Optional[str]:
		if line.endswith("\r"):
			line = line[:-1]
		if not line.strip() or line.startswith(":"):
			return None
		if not line.startswith(DATA_PREFIX):
			return None
		return line[len(DATA_PREFIX):].strip()

	def _drain(self) -> List[str]:
		deltas: List[str] = []
		while not self.done:
			newline = self._buffer.find("\n")
			if newline == -1:
				break
			line = self._buffer[:newline]
			self._buffer = self._buffer[newline + 1:]
			payload = self._payload_of(line)
			if payload is None:
				continue
			if payload == DONE_SENTINEL:
				self.done = True
				break
			try:
				delta = _delta_from_payload(payload)
			except ValueError:
				# Not complete yet: keep it at the front and wait for more bytes
				self._buffer = line + "\n" + self._buffer
				break
			if delta:
				deltas.append(delta)
				self.text += delta
		return deltas


async def iter_deltas(chunks: AsyncIterable[bytes]) -> AsyncIterator[str]:
	"""Yield text deltas from ``chunks`` until ``[DONE]`` or the end of input.

	The source is not closed here; callers that stop early own that.
	"""
	reassembler = StreamReassembler()
	async for chunk in chunks:
		for delta in reassembler.feed(chunk):
			yield delta
		if reassembler.done:
			break
	for delta in reassembler.finish():
		yield delta

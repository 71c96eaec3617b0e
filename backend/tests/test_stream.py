import json

import pytest

from guidebot.tutoring.stream import StreamReassembler, iter_deltas


def _body(*deltas, done=True):
	out = ""
	for d in deltas:
		out += "data: " + json.dumps({"choices": [{"delta": {"content": d}}]}) + "\n\n"
	if done:
		out += "data: [DONE]\n\n"
	return out.encode("utf-8")


def _feed_all(chunks):
	r = StreamReassembler()
	deltas = []
	for chunk in chunks:
		deltas.extend(r.feed(chunk))
	deltas.extend(r.finish())
	return r, deltas


def test_line_split_inside_json_value_is_recovered():
	r, deltas = _feed_all([
		b'data: {"choices":[{"delta":{"content":"Hel',
		b'lo"}}]}\n',
	])

	assert deltas == ["Hello"]
	assert r.text == "Hello"


@pytest.mark.parametrize("size", [1, 2, 3, 7, 16, 64, 10_000])
def test_reassembly_is_independent_of_chunk_boundaries(size):
	body = _body("Think ", "about ", "the ", "tokens ", "first … ", "ünïcödé ✓")
	chunks = [body[i:i + size] for i in range(0, len(body), size)]

	r, _ = _feed_all(chunks)

	assert r.text == "Think about the tokens first … ünïcödé ✓"


def test_multibyte_character_split_across_chunks():
	body = _body("é")
	split = body.index("é".encode("utf-8")) + 1

	r, _ = _feed_all([body[:split], body[split:]])

	assert r.text == "é"


def test_comments_blank_lines_and_other_fields_are_ignored():
	body = (
		b": keep-alive\n"
		b"\n"
		b"event: message\n"
		b"id: 7\n"
		b'data: {"choices":[{"delta":{"content":"ok"}}]}\r\n'
		b'data: {"choices":[{"delta":{"role":"assistant"}}]}\n'
		b'data: {"choices":[]}\n'
	)

	r, deltas = _feed_all([body])

	assert deltas == ["ok"]


def test_done_sentinel_stops_processing():
	body = _body("before") + _body("after", done=False)
	r = StreamReassembler()

	deltas = r.feed(body)

	assert deltas == ["before"]
	assert r.done is True
	assert r.feed(_body("more")) == []
	assert r.finish() == []
	assert r.text == "before"


def test_unparsable_line_waits_and_final_pass_recovers_the_rest():
	body = b"data: {not json}\n" + _body("kept", done=False)
	r = StreamReassembler()

	assert r.feed(body) == []
	assert r.finish() == ["kept"]
	assert r.text == "kept"


def test_residual_line_without_newline_is_flushed_at_end():
	r = StreamReassembler()

	assert r.feed(b'data: {"choices":[{"delta":{"content":"tail"}}]}') == []
	assert r.finish() == ["tail"]


def test_truncated_final_line_is_not_treated_as_content():
	r, deltas = _feed_all([_body("whole", done=False), b'data: {"choices":[{"delta":{"content":"par'])

	assert deltas == ["whole"]
	assert r.text == "whole"


@pytest.mark.asyncio
async def test_iter_deltas_stops_at_done():
	async def chunks():
		yield b'data: {"choices":[{"delta":{"content":"a"}}]}\n'
		yield b'data: {"choices":[{"delta":{"content":"b"}}]}\ndata: [DONE]\n'
		yield b'data: {"choices":[{"delta":{"content":"never"}}]}\n'

	deltas = [delta async for delta in iter_deltas(chunks())]

	assert deltas == ["a", "b"]


@pytest.mark.asyncio
async def test_iter_deltas_makes_a_final_pass_without_done():
	async def chunks():
		yield b'data: {"choices":[{"delta":{"content":"first"}}]}\n\n'
		yield b'data: {"choices":[{"delta":{"content":"last"}}]}'

	deltas = [delta async for delta in iter_deltas(chunks())]

	assert deltas == ["first", "last"]

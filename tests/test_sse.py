import json

from readiness.utils.sse import SSEDecoder, delta_event, done_event, extract_delta


def frame(content):
    return delta_event(content).encode("utf-8")


def decode_all(chunks):
    decoder = SSEDecoder()
    deltas = []
    for chunk in chunks:
        deltas.extend(decoder.feed(chunk))
    deltas.extend(decoder.flush())
    return "".join(deltas), decoder


def test_producer_frames():
    assert delta_event("Hi") == 'data: {"choices": [{"delta": {"content": "Hi"}}]}\n\n'
    assert done_event() == "data: [DONE]\n\n"
    assert extract_delta(json.loads(delta_event("Hi")[6:])) == "Hi"
    assert extract_delta({"choices": []}) is None


def test_lines_split_across_chunks():
    stream = frame("Hello") + frame(", world") + done_event().encode()
    chunks = [stream[i:i + 7] for i in range(0, len(stream), 7)]
    text, decoder = decode_all(chunks)
    assert text == "Hello, world"
    assert decoder.done


def test_multibyte_character_split():
    stream = frame("naïve résumé ✓")
    split = stream.index("✓".encode("utf-8")) + 1
    text, _ = decode_all([stream[:split], stream[split:]])
    assert text == "naïve résumé ✓"


def test_crlf_and_comments_ignored():
    stream = (
        b": keep-alive\r\n"
        b"event: message\r\n"
        + frame("one").replace(b"\n", b"\r\n")
        + b"\r\n"
        + frame("two")
    )
    text, _ = decode_all([stream])
    assert text == "onetwo"


def test_nothing_after_done():
    decoder = SSEDecoder()
    deltas = decoder.feed(frame("before") + done_event().encode() + frame("after"))
    assert deltas == ["before"]
    assert decoder.feed(frame("later")) == []
    assert decoder.flush() == []


def test_payload_broken_by_newline_is_rejoined():
    stream = b'data: {"choices": [{"delta": {"content": "Hel\nlo"}}]}\n\n' + frame("!")
    text, _ = decode_all([stream])
    assert text == "Hello!"


def test_unparseable_payload_dropped_on_next_event():
    stream = b"data: {not json\n" + frame("ok")
    text, _ = decode_all([stream])
    assert text == "ok"


def test_flush_parses_unterminated_line():
    stream = frame("first") + b'data: {"choices": [{"delta": {"content": "tail"}}]}'
    decoder = SSEDecoder()
    assert decoder.feed(stream) == ["first"]
    assert decoder.flush() == ["tail"]

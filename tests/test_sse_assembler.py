from divination_chat.chat.streaming import FrameDecoder, ServerSentEvent, SseEventAssembler


def test_event_name_sticks_across_data_lines() -> None:
    assembler = SseEventAssembler()

    assert assembler.feed("event: thinking") is None
    first = assembler.feed('data: {"a": 1}')
    second = assembler.feed('data: {"a": 2}')

    assert first == ServerSentEvent(data='{"a": 1}', event="thinking")
    assert second is not None and second.event == "thinking"


def test_event_name_sticks_across_chunk_boundaries() -> None:
    decoder = FrameDecoder()
    assembler = SseEventAssembler()

    events = []
    for chunk in (b"event: function_", b"call\n\ndata: {}\n", b"data: {}\n"):
        for line in decoder.feed(chunk):
            event = assembler.feed(line)
            if event is not None:
                events.append(event)

    assert [event.event for event in events] == ["function_call", "function_call"]


def test_default_event_is_message() -> None:
    event = SseEventAssembler().feed("data: hello")
    assert event is not None
    assert event.event == "message"
    assert event.asdict() == {"event": "message", "data": "hello"}


def test_empty_event_name_resets_to_message() -> None:
    assembler = SseEventAssembler()
    assembler.feed("event: thinking")
    assembler.feed("event:")
    assert assembler.current_event == "message"


def test_ignored_lines() -> None:
    assembler = SseEventAssembler()
    for line in ("", ": keep-alive", "id: 42", "retry: 1000", "garbage", "data:", "data:   "):
        assert assembler.feed(line) is None
    assert assembler.current_event == "message"


def test_value_without_leading_space_is_kept_verbatim() -> None:
    event = SseEventAssembler().feed("data:[DONE]")
    assert event is not None
    assert event.data == "[DONE]"
    assert event.is_done


def test_done_sentinel_detection() -> None:
    assembler = SseEventAssembler()
    done = assembler.feed("data: [DONE]")
    other = assembler.feed('data: "[DONE]"')
    assert done is not None and done.is_done
    assert other is not None and not other.is_done

"""Prompt assembly tests."""

from src.writer.models import PromptMessage
from src.writer.prompts import build_chunk_messages, build_page_messages


def test_chunk_messages_structure():
    messages = build_chunk_messages("My Title", ["<p>a</p>", "<p>b</p>"], "Keep it short.")

    assert [m.role for m in messages] == ["system", "user", "user", "user"]
    assert '"My Title"' in messages[0].content
    assert "level 1 heading" in messages[0].content
    assert "Remove all links, images, and URLs" in messages[0].content
    assert messages[1].content == "HTML Chunk 1: <p>a</p>"
    assert messages[2].content == "HTML Chunk 2: <p>b</p>"
    assert "using all available HTML chunks" in messages[3].content
    assert "original language" in messages[3].content
    assert messages[3].content.endswith("Keep it short.")


def test_chunk_messages_keep_chunk_order_and_duplicates():
    chunks = ["same", "other", "same"]
    messages = build_chunk_messages("T", chunks)
    assert [m.content for m in messages[1:-1]] == [
        "HTML Chunk 1: same",
        "HTML Chunk 2: other",
        "HTML Chunk 3: same",
    ]


def test_chunk_messages_without_chunks_or_instruction():
    messages = build_chunk_messages("", [], "")
    assert len(messages) == 2
    assert messages[0].role == "system"
    assert messages[1].role == "user"


def test_title_with_braces_is_embedded_verbatim():
    messages = build_chunk_messages("Set {x} in {y}", ["c"])
    assert '"Set {x} in {y}"' in messages[0].content


def test_page_messages():
    messages = build_page_messages("Page", "the text", "Use bullet points.")
    assert [m.role for m in messages] == ["system", "system", "user", "user"]
    assert "Do not repeat information" in messages[0].content
    assert "The page title is Page." in messages[1].content
    assert messages[2:] == [
        PromptMessage(role="user", content="the text"),
        PromptMessage(role="user", content="Use bullet points."),
    ]


def test_page_messages_skip_empty_instruction():
    messages = build_page_messages("Page", "the text")
    assert [m.role for m in messages] == ["system", "system", "user"]


def test_prompt_message_to_dict():
    assert PromptMessage(role="user", content="hi").to_dict() == {"role": "user", "content": "hi"}

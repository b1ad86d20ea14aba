"""Prompt templates for markdown generation."""

from src.writer.models import PromptMessage

CHUNK_SYSTEM_PROMPT = """\
You are a helpful assistant that can read HTML. You will be given a few HTML \
snippets and you will need to generate a markdown output.
Generating simple and clear markdown in using original text only found in the \
HTML. Remove all links, images, and URLs. Do not repeat information.
Always start the markdown with the page title as level 1 heading. \
The page title is "{title}".\
"""

CHUNK_USER_PROMPT = "HTML Chunk {index}: {chunk}"

GENERATE_PROMPT = """\
Generate a markdown output, in the HTML content original language, using all \
available HTML chunks. {instruction}\
"""

PAGE_SYSTEM_PROMPT = """\
You will be given an HTML page and you will need to generate a markdown \
output. Generating simple and clear markdown in using original text only \
found in the HTML. Remove all links, images, and URLs. Do not repeat \
information.\
"""

PAGE_TITLE_PROMPT = (
    "Always start the markdown with the page title as level 1 heading. "
    "The page title is {title}."
)


def build_chunk_messages(title: str, chunks: list[str], instruction: str = "") -> list[PromptMessage]:
    """Build the system / per-chunk / generate conversation for chunked input."""
    messages = [PromptMessage(role="system", content=CHUNK_SYSTEM_PROMPT.format(title=title))]
    messages.extend(
        PromptMessage(role="user", content=CHUNK_USER_PROMPT.format(index=index, chunk=chunk))
        for index, chunk in enumerate(chunks, start=1)
    )
    messages.append(PromptMessage(role="user", content=GENERATE_PROMPT.format(instruction=instruction)))
    return messages


def build_page_messages(title: str, text: str, instruction: str = "") -> list[PromptMessage]:
    """Build the conversation for a whole page sent as a single text block."""
    messages = [
        PromptMessage(role="system", content=PAGE_SYSTEM_PROMPT),
        PromptMessage(role="system", content=PAGE_TITLE_PROMPT.format(title=title)),
        PromptMessage(role="user", content=text),
    ]
    if instruction:
        messages.append(PromptMessage(role="user", content=instruction))
    return messages

"""ID generation and text measurement utilities."""

import re
import uuid

_CJK = re.compile(r"[一-鿿㐀-䶿豈-﫿]")


def new_id(prefix: str) -> str:
    """Generate a unique entity ID such as ``doc_1a2b3c4d5e6f``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def document_id() -> str:
    return new_id("doc")


def review_id() -> str:
    return new_id("rev")


def task_id() -> str:
    return new_id("task")


def event_id() -> str:
    return new_id("evt")


def count_words(content: str) -> int:
    """Count words in mixed Latin/CJK text.

    Whitespace-separated tokens are counted once each, and every CJK
    ideograph counts as a word of its own.
    """
    if not content:
        return 0
    cjk = len(_CJK.findall(content))
    latin = len(_CJK.sub(" ", content).split())
    return cjk + latin

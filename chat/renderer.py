"""
Message text -> safe HTML.

Formatting is an ordered list of independent text transforms applied left
to right. Escaping runs first so no later transform ever sees raw ``<``.
Code transforms run before emphasis and park their output on a shelf
(replaced by an opaque token) until the end, so ``**`` or newlines inside
code are never reinterpreted. Overlapping markers are best-effort.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Sequence, Union


_TOKEN = "\x00{}\x00"
_TOKEN_RE = re.compile("\x00(\\d+)\x00")

Replacement = Union[str, Callable[[re.Match], str]]


def escape(text: str) -> str:
    return (
        text.replace("\x00", "")
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
    )


@dataclass(frozen=True)
class Transform:
    name: str
    pattern: re.Pattern
    replacement: Replacement
    shield: bool = False

    def apply(self, text: str, shelf: List[str]) -> str:
        if not self.shield:
            return self.pattern.sub(self.replacement, text)

        def park(match: re.Match) -> str:
            if callable(self.replacement):
                html = self.replacement(match)
            else:
                html = match.expand(self.replacement)
            shelf.append(html)
            return _TOKEN.format(len(shelf) - 1)

        return self.pattern.sub(park, text)


LINK = Transform(
    "link",
    re.compile(r"(https?://[^\s\"'\x00]+)"),
    r'<a href="\1" target="_blank" rel="noopener noreferrer" class="chat-link">\1</a>',
)
FENCED_CODE = Transform(
    "fenced_code",
    re.compile(r"```([\s\S]*?)```"),
    r'<pre class="code-block"><code>\1</code></pre>',
    shield=True,
)
INLINE_CODE = Transform(
    "inline_code",
    re.compile(r"`([^`]+)`"),
    r'<code class="inline-code">\1</code>',
    shield=True,
)
BOLD = Transform("bold", re.compile(r"\*\*([^*]+)\*\*"), r"<strong>\1</strong>")
ITALIC = Transform("italic", re.compile(r"\*([^*]+)\*"), r"<em>\1</em>")
LINE_BREAK = Transform("line_break", re.compile(r"\r?\n"), "<br>")

MARKDOWN_TRANSFORMS = (LINK, FENCED_CODE, INLINE_CODE, BOLD, ITALIC, LINE_BREAK)
PLAIN_TRANSFORMS = (LINK, LINE_BREAK)


class MessageRenderer:
    def __init__(self, transforms: Sequence[Transform] = MARKDOWN_TRANSFORMS) -> None:
        self.transforms = tuple(transforms)

    @classmethod
    def for_preferences(cls, markdown_enabled: bool) -> "MessageRenderer":
        return cls(MARKDOWN_TRANSFORMS if markdown_enabled else PLAIN_TRANSFORMS)

    def render(self, text: str) -> str:
        shelf: List[str] = []
        out = escape(text)
        for transform in self.transforms:
            out = transform.apply(out, shelf)
        # Shelved fragments may hold tokens of their own only if a shielded
        # transform matched across another's output; resolve until stable.
        while shelf and _TOKEN_RE.search(out):
            out = _TOKEN_RE.sub(lambda m: shelf[int(m.group(1))], out)
        return out


def render(text: str, *, markdown: bool = True) -> str:
    return MessageRenderer.for_preferences(markdown).render(text)

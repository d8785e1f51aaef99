"""
Response formatting for Telegram.
Rewrites provider Markdown into Telegram's legacy Markdown and splits long replies.
"""
import re
from typing import Iterator

_BOLD_MARK = "\x00"


class ResponseFormatter:
    """Converts provider replies into transport-safe chunks."""

    CODE_BLOCK = re.compile(r'(```.*?```)', re.DOTALL)

    @staticmethod
    def _format_header(match: re.Match) -> str:
        title = match.group(1).replace("**", "").replace("__", "")
        return f"{_BOLD_MARK}{title}{_BOLD_MARK}"

    @classmethod
    def _format_prose(cls, text: str) -> str:
        text = re.sub(r'^[ \t]*[-_*]{3,}[ \t]*$', '', text, flags=re.MULTILINE)
        text = re.sub(r'^#{1,6}[ \t]+(.*?)[ \t]*#*[ \t]*$', cls._format_header, text, flags=re.MULTILINE)
        text = re.sub(r'^([ \t]*)[-*+][ \t]+', r'\1• ', text, flags=re.MULTILINE)
        text = re.sub(r'\*\*(.+?)\*\*', rf'{_BOLD_MARK}\1{_BOLD_MARK}', text)
        text = re.sub(r'__(.+?)__', rf'{_BOLD_MARK}\1{_BOLD_MARK}', text)
        text = re.sub(r'(?<![\w*])\*(?!\s)([^*\n]+?)(?<!\s)\*(?![\w*])', r'_\1_', text)
        return text.replace(_BOLD_MARK, '*')

    @classmethod
    def format(cls, raw_text: str) -> str:
        """Rewrite provider markup outside fenced code blocks."""
        if not raw_text:
            return ""

        parts = cls.CODE_BLOCK.split(raw_text)
        formatted = [
            part if part.startswith("```") else cls._format_prose(part)
            for part in parts
        ]
        text = "".join(formatted)
        text = re.sub(r'\n{3,}', '\n\n', text)
        return text.strip()

    @staticmethod
    def strip_markup(text: str) -> str:
        """Plain-text rendering used when the transport rejects markup."""
        text = re.sub(r'\[([^\]]+)\]\(([^)]+)\)', r'\1 (\2)', text)
        text = text.replace("```", "")
        text = re.sub(r'[*_`]', '', text)
        return text

    @staticmethod
    def chunk(text: str, max_size: int) -> Iterator[str]:
        """
        Yield segments of at most max_size characters.

        Splits at the last newline within the limit and hard-cuts only when a
        single line is longer than the limit.
        """
        if max_size < 1:
            raise ValueError("max_size must be positive")

        if len(text) <= max_size:
            yield text
            return

        remaining = text
        while remaining:
            if len(remaining) <= max_size:
                piece, remaining = remaining, ""
            else:
                cut = remaining.rfind("\n", 0, max_size + 1)
                if cut <= 0:
                    piece, remaining = remaining[:max_size], remaining[max_size:]
                else:
                    piece, remaining = remaining[:cut], remaining[cut + 1:]

            if piece.strip():
                yield piece

"""Helpers for question text pasted or imported from web pages."""
import re

from bs4 import BeautifulSoup

_BLANK_LINES = re.compile(r"\n\s*\n+")
_SPACES = re.compile(r"[ \t\xa0]+")


def looks_like_html(text: str) -> bool:
    return bool(re.search(r"<\s*[a-zA-Z][^>]*>", text or ""))


def clean_question_text(text: str) -> str:
    """Strip markup, collapse runs of spaces and blank lines, keep line breaks between blocks."""
    if not text:
        return ""
    if looks_like_html(text):
        soup = BeautifulSoup(text, "html.parser")
        for tag in soup(["script", "style"]):
            tag.decompose()
        text = soup.get_text("\n")
    lines = [_SPACES.sub(" ", line).strip() for line in text.splitlines()]
    return _BLANK_LINES.sub("\n\n", "\n".join(lines)).strip()

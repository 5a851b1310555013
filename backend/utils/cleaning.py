"""
Text cleaning utilities.
Normalises candidate answers and keywords for matching, and strips
reasoning blocks and code fences from model output before JSON parsing.
"""
import re


class ResponseCleaner:
    """
    Cleans free text coming from candidates, documents and the model server.
    """

    _THINK_BLOCK = re.compile(r'<think>.*?</think>', re.DOTALL | re.IGNORECASE)
    _STRAY_THINK_TAG = re.compile(r'</?\s*think\s*>', re.IGNORECASE)
    _CODE_FENCE = re.compile(r'```[A-Za-z0-9_-]*')

    @classmethod
    def strip_reasoning(cls, text: str) -> str:
        """Remove <think> blocks and any broken think tags."""
        if not text:
            return ""
        cleaned = cls._THINK_BLOCK.sub('', text)
        # An unterminated block means everything before the closing tag is reasoning
        if re.search(r'</think>', cleaned, re.IGNORECASE):
            cleaned = re.split(r'</think>', cleaned, flags=re.IGNORECASE)[-1]
        cleaned = cls._STRAY_THINK_TAG.sub('', cleaned)
        return cleaned.strip()

    @classmethod
    def clean_json_response(cls, text: str) -> str:
        """Clean a model response down to its outermost JSON object."""
        cleaned = cls.strip_reasoning(text)
        cleaned = cls._CODE_FENCE.sub('', cleaned)

        start = cleaned.find('{')
        end = cleaned.rfind('}')
        if start == -1 or end <= start:
            return "{}"

        candidate = cleaned[start:end + 1]
        # Fix trailing commas
        return re.sub(r',\s*([}\]])', r'\1', candidate)

    @staticmethod
    def normalize_for_matching(text: str) -> str:
        """Lowercase and replace every non-alphanumeric run with a single space."""
        cleaned = re.sub(r'[^a-z0-9\s]', ' ', text or '', flags=re.IGNORECASE)
        cleaned = re.sub(r'\s+', ' ', cleaned)
        return cleaned.lower()

    @staticmethod
    def normalize_whitespace(text: str) -> str:
        """Collapse all whitespace (including newlines) to single spaces."""
        return re.sub(r'\s+', ' ', (text or '').replace('\r\n', '\n')).strip()

    @staticmethod
    def word_count(text: str) -> int:
        stripped = (text or '').strip()
        return len(stripped.split()) if stripped else 0

    @staticmethod
    def truncate(text: str, limit: int, ellipsis: str = "…") -> str:
        """Cut text to `limit` characters, adding an ellipsis if anything was cut."""
        if len(text) <= limit:
            return text
        return f"{text[:limit]}{ellipsis}"

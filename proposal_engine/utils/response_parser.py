"""
Parsing and repair of JSON returned by the completion service.

Pure string transforms only; callers decide what to do with a ParseError.
"""
import json
import logging
import re
from typing import Any

from proposal_engine.core.exceptions import ParseError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r'```(?:json)?[ \t]*\n?', re.IGNORECASE)
_CONTROL_CHARS = re.compile(r'[\u0000-\u001F]+')
_CONTROL_AND_C1_CHARS = re.compile(r'[\u0000-\u001F\u007F-\u009F]')
_JSON_OBJECT = re.compile(r'\{[\s\S]*\}')

# Characters that may legitimately follow the closing quote of a JSON string
_STRING_TERMINATORS = ',:}]'


class ResponseParser:
    """Clean markdown-wrapped JSON, repair common model artifacts, and parse."""

    @staticmethod
    def clean_json_response(text: str) -> str:
        """Strip markdown code fences and surrounding whitespace."""
        return _FENCE_PATTERN.sub('', text or '').replace('```', '').strip()

    @staticmethod
    def strip_control_characters(text: str) -> str:
        """Replace runs of ASCII control characters (raw newlines, tabs) with a space."""
        return _CONTROL_CHARS.sub(' ', text)

    @staticmethod
    def escape_inner_quotes(text: str) -> str:
        """Escape double quotes that sit inside a string value.

        Single left-to-right scan tracking whether we are inside a string. A quote
        met inside a string closes it only when the next non-space character can
        legally follow a string (`,` `:` `}` `]` or end of text); any other quote
        is treated as part of the value and escaped.
        """
        result = []
        in_string = False
        escaped = False
        length = len(text)
        for index, char in enumerate(text):
            if escaped:
                result.append(char)
                escaped = False
                continue
            if char == '\\':
                result.append(char)
                escaped = in_string
                continue
            if char != '"':
                result.append(char)
                continue
            if not in_string:
                in_string = True
                result.append(char)
                continue
            next_index = index + 1
            while next_index < length and text[next_index] in ' \t\r\n':
                next_index += 1
            if next_index >= length or text[next_index] in _STRING_TERMINATORS:
                in_string = False
                result.append(char)
            else:
                result.append('\\"')
        return ''.join(result)

    @staticmethod
    def repair_json_text(text: str) -> str:
        """First repair pass: control characters and unescaped inner quotes."""
        return ResponseParser.escape_inner_quotes(ResponseParser.strip_control_characters(text))

    @staticmethod
    def aggressive_clean(text: str) -> str:
        """Last-resort pass: normalize curly quotes and drop every control character."""
        cleaned = (text
                   .replace('“', '"').replace('”', '"')
                   .replace('‘', "'").replace('’', "'"))
        cleaned = _CONTROL_AND_C1_CHARS.sub('', cleaned)
        return ResponseParser.escape_inner_quotes(cleaned)

    @staticmethod
    def parse_json(text: str, repair: bool = False) -> Any:
        """Parse model output as JSON.

        With `repair` the structural repair passes and a final `{...}` extraction
        are tried in turn before giving up. Raises ParseError carrying the raw
        text when nothing parses.
        """
        cleaned = ResponseParser.clean_json_response(text)
        try:
            return json.loads(cleaned)
        except json.JSONDecodeError as e:
            first_error = e

        if not repair:
            raise ParseError(f"Invalid JSON in model response: {first_error}", raw_text=text,
                             original_error=first_error)

        candidates = [
            ResponseParser.repair_json_text(cleaned),
            ResponseParser.aggressive_clean(cleaned),
        ]
        match = _JSON_OBJECT.search(cleaned)
        if match:
            candidates.append(ResponseParser.aggressive_clean(match.group(0)))

        for attempt, candidate in enumerate(candidates, start=1):
            try:
                parsed = json.loads(candidate)
                logger.info(f"🔧 Parsed model response after repair pass {attempt}")
                return parsed
            except json.JSONDecodeError:
                continue

        raise ParseError("Failed to parse response despite multiple cleaning attempts", raw_text=text,
                         original_error=first_error)

    @staticmethod
    def describe_error_position(error: Exception, radius: int = 30) -> str:
        """Context snippet around a JSONDecodeError position, for diagnostics."""
        if not isinstance(error, json.JSONDecodeError):
            return ''
        text = error.doc
        position = error.pos
        start = max(0, position - radius)
        end = min(len(text), position + radius)
        nearby = ', '.join(f"{ord(c)}" for c in text[max(0, position - 5):position + 5])
        return f"...{text[start:end]}... (position {position}, nearby char codes: {nearby})"

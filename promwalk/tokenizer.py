"""Character-driven tokenizer for text exposition sample lines."""
from enum import Enum, auto
from typing import Dict, Optional

from promwalk.errors import ExpositionSyntaxError
from promwalk.series import Sample

_WHITESPACE = (" ", "\t")


class TokenizerState(Enum):
    NAME = auto()
    END_OF_NAME = auto()
    START_OF_LABEL_NAME = auto()
    LABEL_NAME = auto()
    LABEL_VALUE_EQUALS = auto()
    LABEL_VALUE_QUOTE = auto()
    LABEL_VALUE = auto()
    LABEL_VALUE_ESCAPE = auto()
    NEXT_LABEL = auto()
    END_OF_LABELS = auto()
    VALUE = auto()


def parse_sample_line(line: str) -> Sample:
    """
    Tokenize one trimmed, non-comment line into a Sample.

    Labels keep the order they appear in. Scanning stops at the first
    whitespace after the value, so a trailing timestamp is never read.

    Raises:
        ExpositionSyntaxError: if the label block is malformed
    """
    name = []
    label_name = []
    label_value = []
    value = []
    labels: Dict[str, str] = {}
    state = TokenizerState.NAME

    for char in line:
        if state is TokenizerState.NAME:
            if char == "{":
                state = TokenizerState.START_OF_LABEL_NAME
            elif char in _WHITESPACE:
                state = TokenizerState.END_OF_NAME
            else:
                name.append(char)

        elif state is TokenizerState.END_OF_NAME:
            if char == "{":
                state = TokenizerState.START_OF_LABEL_NAME
            elif char not in _WHITESPACE:
                value.append(char)
                state = TokenizerState.VALUE

        elif state is TokenizerState.START_OF_LABEL_NAME:
            if char == "}":
                state = TokenizerState.END_OF_LABELS
            elif char not in _WHITESPACE:
                label_name.append(char)
                state = TokenizerState.LABEL_NAME

        elif state is TokenizerState.LABEL_NAME:
            if char == "=":
                state = TokenizerState.LABEL_VALUE_QUOTE
            elif char == "}":
                raise ExpositionSyntaxError(f"Label '{''.join(label_name)}' has no value", line)
            elif char in _WHITESPACE:
                state = TokenizerState.LABEL_VALUE_EQUALS
            else:
                label_name.append(char)

        elif state is TokenizerState.LABEL_VALUE_EQUALS:
            if char == "=":
                state = TokenizerState.LABEL_VALUE_QUOTE
            elif char not in _WHITESPACE:
                raise ExpositionSyntaxError("Expected '=' after label name", line)

        elif state is TokenizerState.LABEL_VALUE_QUOTE:
            if char == '"':
                state = TokenizerState.LABEL_VALUE
            elif char not in _WHITESPACE:
                raise ExpositionSyntaxError("Expected '\"' to open label value", line)

        elif state is TokenizerState.LABEL_VALUE:
            if char == "\\":
                state = TokenizerState.LABEL_VALUE_ESCAPE
            elif char == '"':
                labels["".join(label_name)] = "".join(label_value)
                label_name.clear()
                label_value.clear()
                state = TokenizerState.NEXT_LABEL
            else:
                label_value.append(char)

        elif state is TokenizerState.LABEL_VALUE_ESCAPE:
            state = TokenizerState.LABEL_VALUE
            if char == "\\":
                label_value.append("\\")
            elif char == "n":
                label_value.append("\n")
            elif char == '"':
                label_value.append('"')
            else:
                label_value.append("\\" + char)

        elif state is TokenizerState.NEXT_LABEL:
            if char == ",":
                state = TokenizerState.START_OF_LABEL_NAME
            elif char == "}":
                state = TokenizerState.END_OF_LABELS
            elif char not in _WHITESPACE:
                raise ExpositionSyntaxError("Expected ',' or '}' after label value", line)

        elif state is TokenizerState.END_OF_LABELS:
            if char not in _WHITESPACE:
                value.append(char)
                state = TokenizerState.VALUE

        elif state is TokenizerState.VALUE:
            if char in _WHITESPACE:
                # timestamps are not supported
                break
            value.append(char)

    if state in (
        TokenizerState.START_OF_LABEL_NAME,
        TokenizerState.LABEL_NAME,
        TokenizerState.LABEL_VALUE_EQUALS,
        TokenizerState.LABEL_VALUE_QUOTE,
        TokenizerState.LABEL_VALUE,
        TokenizerState.LABEL_VALUE_ESCAPE,
        TokenizerState.NEXT_LABEL,
    ):
        raise ExpositionSyntaxError("Unterminated label block", line)
    if not name:
        raise ExpositionSyntaxError("Sample has no metric name", line)
    if not value:
        raise ExpositionSyntaxError("Sample has no value", line)

    return Sample(name="".join(name), labels=labels, raw_value="".join(value), line=line)


def unescape_help(text: Optional[str]) -> str:
    """Undo ``\\\\`` and ``\\n`` escapes in a HELP docstring."""
    if not text:
        return ""
    if "\\" not in text:
        return text

    result = []
    slash = False
    for char in text:
        if slash:
            if char == "\\":
                result.append("\\")
            elif char == "n":
                result.append("\n")
            else:
                result.append("\\" + char)
            slash = False
        elif char == "\\":
            slash = True
        else:
            result.append(char)

    # unmatched trailing backslash is kept
    if slash:
        result.append("\\")
    return "".join(result)

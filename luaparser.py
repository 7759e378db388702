"""
luaparser.py
Lua literal-table parser for DCS mission archives
Reads the `mission` file and the l10n `dictionary` files into plain Python values
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple, Union

LuaValue = Union[str, int, float, bool, Dict]

# --- Token types ---
NAME = 'NAME'
STRING = 'STRING'
NUMBER = 'NUMBER'
SYMBOL = 'SYMBOL'
EOF = 'EOF'

SIMPLE_ESCAPES = {
    'n': '\n', 't': '\t', 'r': '\r', 'a': '\a', 'b': '\b',
    'f': '\f', 'v': '\v', '\\': '\\', '"': '"', "'": "'",
}

NAME_RE = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')
NUMBER_RE = re.compile(
    r'0[xX][0-9A-Fa-f]+(?:\.[0-9A-Fa-f]*)?(?:[pP][+-]?[0-9]+)?'
    r'|(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?'
)
LONG_BRACKET_RE = re.compile(r'\[(=*)\[')
DECIMAL_ESCAPE_RE = re.compile(r'[0-9]{1,3}')
HEX_ESCAPE_RE = re.compile(r'[0-9A-Fa-f]{2}')
UNICODE_ESCAPE_RE = re.compile(r'\{([0-9A-Fa-f]+)\}')


class ParseErrorKind(Enum):
    UNTERMINATED_STRING = 'UnterminatedString'
    UNEXPECTED_TOKEN = 'UnexpectedToken'
    UNBALANCED_BRACES = 'UnbalancedBraces'


class ParseError(Exception):
    """Raised when literal text cannot be parsed. Carries the failing position."""

    def __init__(self, kind: ParseErrorKind, message: str, position: int, text: str = ''):
        self.kind = kind
        self.position = position
        self.line, self.column = line_and_column(text, position)
        super().__init__(f"{kind.value} at line {self.line}, column {self.column}: {message}")


class EscapeError(ValueError):
    """Raised when text cannot be written as a Lua string literal."""

    def __init__(self, message: str, key: Optional[str] = None):
        self.key = key
        super().__init__(f"{message} (key: {key})" if key else message)


@dataclass
class Token:
    type: str
    value: object
    start: int
    end: int


def line_and_column(text: str, position: int) -> Tuple[int, int]:
    """Convert a character offset to a 1-based (line, column) pair."""
    position = max(0, min(position, len(text)))
    line = text.count('\n', 0, position) + 1
    column = position - (text.rfind('\n', 0, position) + 1) + 1
    return line, column


def is_digit(ch: str) -> bool:
    # ASCII only; str.isdigit() also accepts superscripts and other scripts' digits
    return '0' <= ch <= '9'


def _unicode_escape(body: str, pos: int) -> bool:
    m = UNICODE_ESCAPE_RE.match(body, pos)
    return bool(m) and int(m.group(1), 16) <= 0x10FFFF


def unescape_lua_string(body: str) -> str:
    """Decode the escape sequences of a short string body (quotes excluded)."""
    if '\\' not in body:
        return body

    out = []
    # \ddd and \xhh denote bytes; consecutive ones are decoded together as UTF-8
    pending = bytearray()

    def flush():
        if pending:
            try:
                out.append(pending.decode('utf-8'))
            except UnicodeDecodeError:
                out.append(pending.decode('latin-1'))
            pending.clear()

    i = 0
    n = len(body)
    while i < n:
        ch = body[i]
        if ch != '\\' or i + 1 >= n:
            flush()
            out.append(ch)
            i += 1
            continue

        nxt = body[i + 1]
        if nxt == 'x' and HEX_ESCAPE_RE.match(body, i + 2):
            pending.append(int(body[i + 2:i + 4], 16))
            i += 4
            continue
        if is_digit(nxt):
            m = DECIMAL_ESCAPE_RE.match(body, i + 1)
            pending.append(int(m.group(0)) & 0xFF)
            i = m.end()
            continue

        flush()
        if nxt in SIMPLE_ESCAPES:
            out.append(SIMPLE_ESCAPES[nxt])
            i += 2
        elif nxt == '\n' or nxt == '\r':
            # Backslash-newline continues the string on the next line
            out.append('\n')
            i += 2
            if i < n and body[i] in '\r\n' and body[i] != nxt:
                i += 1
        elif nxt == 'z':
            i += 2
            while i < n and body[i].isspace():
                i += 1
        elif nxt == 'u' and _unicode_escape(body, i + 2):
            m = UNICODE_ESCAPE_RE.match(body, i + 2)
            out.append(chr(int(m.group(1), 16)))
            i = m.end()
        else:
            # Unknown escape: keep it verbatim
            out.append(ch)
            out.append(nxt)
            i += 2
    flush()
    return ''.join(out)


def escape_lua_string(text: str, quote: str = '"', key: Optional[str] = None) -> str:
    """
    Escape text for insertion between two `quote` characters.

    Backslashes, the active quote character, newlines, carriage returns and
    tabs get their short escapes; any other control character is written as
    a three digit decimal escape so a following digit can't extend it.
    """
    out = []
    for ch in text:
        code = ord(ch)
        if ch == '\\':
            out.append('\\\\')
        elif ch == quote:
            out.append('\\' + quote)
        elif ch == '\n':
            out.append('\\n')
        elif ch == '\r':
            out.append('\\r')
        elif ch == '\t':
            out.append('\\t')
        elif code < 0x20 or code == 0x7f:
            out.append(f'\\{code:03d}')
        elif 0xD800 <= code <= 0xDFFF:
            raise EscapeError(f"lone surrogate U+{code:04X} cannot be encoded", key)
        else:
            out.append(ch)
    return ''.join(out)


class LuaTokenizer:
    """
    Splits Lua literal text into tokens.

    Comments and whitespace are skipped. Anything that is not a name, number,
    string or long string comes out as a one-character SYMBOL, which is
    enough to walk trigger action scripts as well as data tables.
    """

    def __init__(self, text: str, pos: int = 0):
        self.text = text
        self.pos = pos
        if pos == 0 and text.startswith('\ufeff'):
            self.pos = 1

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            yield token
            if token.type == EOF:
                return

    def error(self, kind: ParseErrorKind, message: str, position: int) -> ParseError:
        return ParseError(kind, message, position, self.text)

    def _skip_space_and_comments(self):
        text = self.text
        n = len(text)
        while self.pos < n:
            ch = text[self.pos]
            if ch.isspace():
                self.pos += 1
            elif text.startswith('--', self.pos):
                m = LONG_BRACKET_RE.match(text, self.pos + 2)
                if m:
                    close = ']' + m.group(1) + ']'
                    end = text.find(close, m.end())
                    if end < 0:
                        raise self.error(ParseErrorKind.UNTERMINATED_STRING,
                                         "unfinished long comment", self.pos)
                    self.pos = end + len(close)
                else:
                    end = text.find('\n', self.pos)
                    self.pos = n if end < 0 else end + 1
            else:
                return

    def _read_short_string(self, start: int) -> Token:
        text = self.text
        quote = text[start]
        i = start + 1
        n = len(text)
        while i < n:
            ch = text[i]
            if ch == '\\':
                if text.startswith('\r\n', i + 1):
                    i += 3
                else:
                    i += 2
            elif ch == quote:
                return Token(STRING, unescape_lua_string(text[start + 1:i]), start, i + 1)
            elif ch == '\n':
                raise self.error(ParseErrorKind.UNTERMINATED_STRING,
                                 "unfinished string", start)
            else:
                i += 1
        raise self.error(ParseErrorKind.UNTERMINATED_STRING, "unfinished string", start)

    def _read_long_string(self, start: int, level: str) -> Token:
        open_len = len(level) + 2
        close = ']' + level + ']'
        end = self.text.find(close, start + open_len)
        if end < 0:
            raise self.error(ParseErrorKind.UNTERMINATED_STRING,
                             "unfinished long string", start)
        body = self.text[start + open_len:end]
        # A newline right after the opening bracket is not part of the string
        if body.startswith('\r\n'):
            body = body[2:]
        elif body.startswith('\n'):
            body = body[1:]
        return Token(STRING, body, start, end + len(close))

    def next_token(self) -> Token:
        self._skip_space_and_comments()
        text = self.text
        start = self.pos
        if start >= len(text):
            return Token(EOF, None, start, start)

        ch = text[start]
        if ch == '"' or ch == "'":
            token = self._read_short_string(start)
        elif ch == '[' and LONG_BRACKET_RE.match(text, start):
            token = self._read_long_string(start, LONG_BRACKET_RE.match(text, start).group(1))
        elif is_digit(ch) or (ch == '.' and start + 1 < len(text) and is_digit(text[start + 1])):
            m = NUMBER_RE.match(text, start)
            token = Token(NUMBER, _convert_number(m.group(0)), start, m.end())
        elif ch == '_' or ch.isalpha():
            m = NAME_RE.match(text, start)
            if m:
                token = Token(NAME, m.group(0), start, m.end())
            else:
                token = Token(SYMBOL, ch, start, start + 1)
        else:
            token = Token(SYMBOL, ch, start, start + 1)

        self.pos = token.end
        return token


def _convert_number(raw: str) -> Union[int, float]:
    lowered = raw.lower()
    if lowered.startswith('0x'):
        if '.' in lowered or 'p' in lowered:
            return float.fromhex(raw)
        return int(raw, 16)
    if any(c in lowered for c in '.e'):
        return float(raw)
    return int(raw)


def _normalize_key(key):
    if isinstance(key, float) and key.is_integer():
        return int(key)
    return key


class LuaParser:
    """Recursive-descent parser for the literal table subset."""

    def __init__(self, text: str):
        self.text = text
        self.tokenizer = LuaTokenizer(text)
        self.lookahead: List[Token] = []
        self.depth = 0

    # --- Token stream ---
    def peek(self, offset: int = 0) -> Token:
        while len(self.lookahead) <= offset:
            self.lookahead.append(self.tokenizer.next_token())
        return self.lookahead[offset]

    def advance(self) -> Token:
        token = self.peek()
        self.lookahead.pop(0)
        return token

    def is_symbol(self, token: Token, value: str) -> bool:
        return token.type == SYMBOL and token.value == value

    def unexpected(self, token: Token, expected: str) -> ParseError:
        if token.type == EOF:
            if self.depth > 0:
                return ParseError(ParseErrorKind.UNBALANCED_BRACES,
                                  f"{self.depth} unclosed table(s), expected {expected}",
                                  token.start, self.text)
            return ParseError(ParseErrorKind.UNEXPECTED_TOKEN,
                              f"unexpected end of input, expected {expected}",
                              token.start, self.text)
        if self.is_symbol(token, '}') and self.depth == 0:
            return ParseError(ParseErrorKind.UNBALANCED_BRACES, "unmatched '}'",
                              token.start, self.text)
        return ParseError(ParseErrorKind.UNEXPECTED_TOKEN,
                          f"unexpected {token.value!r}, expected {expected}",
                          token.start, self.text)

    def expect_symbol(self, value: str) -> Token:
        token = self.advance()
        if not self.is_symbol(token, value):
            raise self.unexpected(token, repr(value))
        return token

    # --- Grammar ---
    def parse_chunk(self) -> Tuple[Optional[str], LuaValue]:
        name = None
        first = self.peek()
        if first.type == NAME and first.value == 'local' and self.peek(1).type == NAME:
            self.advance()
            first = self.peek()
        if first.type == NAME and self.is_symbol(self.peek(1), '='):
            name = self.advance().value
            self.advance()

        value = self.parse_value()

        while self.is_symbol(self.peek(), ';'):
            self.advance()
        trailing = self.peek()
        if trailing.type != EOF:
            raise self.unexpected(trailing, "end of input")
        return name, value

    def parse_value(self) -> LuaValue:
        token = self.advance()
        if token.type == STRING or token.type == NUMBER:
            return token.value
        if token.type == NAME:
            if token.value == 'true':
                return True
            if token.value == 'false':
                return False
            if token.value == 'nil':
                return None
        if token.type == SYMBOL:
            if token.value == '{':
                return self.parse_table()
            if token.value == '-' and self.peek().type == NUMBER:
                return -self.advance().value
        raise self.unexpected(token, "a value")

    def parse_table(self) -> Dict:
        table: Dict = {}
        index = 1
        self.depth += 1
        while True:
            token = self.peek()
            if self.is_symbol(token, '}'):
                self.advance()
                break

            if self.is_symbol(token, '['):
                self.advance()
                key = _normalize_key(self.parse_value())
                self.expect_symbol(']')
                self.expect_symbol('=')
                self._assign(table, key, self.parse_value(), token)
            elif token.type == NAME and self.is_symbol(self.peek(1), '='):
                self.advance()
                self.advance()
                self._assign(table, token.value, self.parse_value(), token)
            else:
                value = self.parse_value()
                if value is not None:
                    table[index] = value
                index += 1

            separator = self.peek()
            if self.is_symbol(separator, ',') or self.is_symbol(separator, ';'):
                self.advance()
            elif not self.is_symbol(separator, '}'):
                raise self.unexpected(separator, "',' or '}'")
        self.depth -= 1
        return table

    def _assign(self, table: Dict, key, value, token: Token):
        if key is None or isinstance(key, dict):
            raise ParseError(ParseErrorKind.UNEXPECTED_TOKEN, "invalid table key",
                             token.start, self.text)
        if value is None:
            table.pop(key, None)
        else:
            table[key] = value


def parse_assignment(text: str) -> Tuple[Optional[str], LuaValue]:
    """Parse `name = value` (or a bare value) and return (name, value)."""
    return LuaParser(text).parse_chunk()


def parse(text: str) -> LuaValue:
    """Parse literal text, skipping a leading `name =` assignment."""
    return parse_assignment(text)[1]

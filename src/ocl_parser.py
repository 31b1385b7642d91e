"""ocl_parser.py

Parse Octopus Configuration Language (OCL) text into a small syntax tree.

OCL is the HCL-like format Octopus Deploy writes for config-as-code
repositories.  A deployment process file is a sequence of ``step`` blocks::

    step "generate-github-token" {
        name = "Generate GitHub Token"

        action {
            action_type = "Octopus.Script"
            properties = {
                Octopus.Action.Script.ScriptBody = <<-EOT
                    echo "hello"
                EOT
            }
        }
    }

Only the structure is interpreted.  String literals keep their surrounding
quotes in :attr:`Literal.text`; callers unquote as needed.

Example:
    nodes = parse(pathlib.Path("deployment_process.ocl").read_text())
"""
from __future__ import annotations

import enum
import re
import textwrap
from dataclasses import dataclass
from typing import List, Tuple, Union


class OclParseError(ValueError):
    """Raised when OCL text cannot be parsed."""

    def __init__(self, message: str, line: int) -> None:
        super().__init__(f"line {line}: {message}")
        self.line = line


# ---- Syntax tree ----------------------------------------------------------


class NodeType(enum.Enum):
    ATTRIBUTE = "attribute"
    BLOCK = "block"


@dataclass(frozen=True)
class Literal:
    kind: str  # string, heredoc, number, boolean or identifier
    text: str


@dataclass(frozen=True)
class ListValue:
    items: Tuple["Value", ...]


@dataclass(frozen=True)
class Dictionary:
    children: Tuple["Attribute", ...]


Value = Union[Literal, ListValue, Dictionary]


@dataclass(frozen=True)
class Attribute:
    name: str
    value: Value
    line: int = 0

    @property
    def type(self) -> NodeType:
        return NodeType.ATTRIBUTE


@dataclass(frozen=True)
class Block:
    name: str
    labels: Tuple[str, ...] = ()
    children: Tuple["Node", ...] = ()
    line: int = 0

    @property
    def type(self) -> NodeType:
        return NodeType.BLOCK


Node = Union[Attribute, Block]


# ---- Lexer ----------------------------------------------------------------


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    line: int


TOKEN_RE = re.compile(
    r"""
      (?P<newline>\r?\n)
    | (?P<space>[ \t\f]+)
    | (?P<comment>(?:\#|//)[^\n]*)
    | (?P<heredoc><<(?P<indent>-?)(?P<marker>[A-Za-z_][A-Za-z0-9_]*)[ \t]*\r?\n)
    | (?P<string>"(?:[^"\\\n]|\\.)*")
    | (?P<number>-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)
    | (?P<name>[A-Za-z_][A-Za-z0-9_.\-]*)
    | (?P<punct>[{}\[\]=,:])
    """,
    re.VERBOSE,
)


def _heredoc_body(text: str, start: int, marker: str, line: int) -> Tuple[str, int]:
    """Return the heredoc body starting at ``start`` and the offset after its end marker."""
    end_re = re.compile(rf"^[ \t]*{re.escape(marker)}[ \t]*\r?$", re.MULTILINE)
    end = end_re.search(text, start)
    if end is None:
        raise OclParseError(f"unterminated heredoc, expected closing {marker}", line)
    return text[start:end.start()], end.end()


def tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    line = 1
    while pos < len(text):
        match = TOKEN_RE.match(text, pos)
        if match is None:
            raise OclParseError(f"unexpected character {text[pos]!r}", line)
        kind = match.lastgroup
        if kind == "heredoc":
            body, pos = _heredoc_body(text, match.end(), match.group("marker"), line)
            if match.group("indent"):
                body = textwrap.dedent(body)
            tokens.append(Token("heredoc", body.rstrip("\r\n"), line))
            line += match.group(0).count("\n") + body.count("\n")
            continue
        value = match.group(0)
        if kind == "newline":
            tokens.append(Token("newline", "\n", line))
            line += 1
        elif kind == "punct":
            tokens.append(Token(value, value, line))
        elif kind not in ("space", "comment"):
            tokens.append(Token(kind, value, line))
        pos = match.end()
    tokens.append(Token("eof", "", line))
    return tokens


# ---- Parser ---------------------------------------------------------------


class Parser:
    """Recursive descent parser over the token list produced by :func:`tokenize`."""

    def __init__(self, text: str) -> None:
        self._tokens = tokenize(text)
        self._pos = 0

    # Internal helpers -----------------------------------------------------
    def _peek(self) -> Token:
        index = min(self._pos, len(self._tokens) - 1)
        return self._tokens[index]

    def _next(self) -> Token:
        token = self._peek()
        self._pos += 1
        return token

    def _expect(self, kind: str) -> Token:
        token = self._next()
        if token.kind != kind:
            raise OclParseError(f"expected {kind!r}, found {token.value or token.kind!r}", token.line)
        return token

    def _skip_newlines(self) -> None:
        while self._peek().kind == "newline":
            self._pos += 1

    def _body(self, *, nested: bool, in_dictionary: bool = False) -> List[Node]:
        nodes: List[Node] = []
        while True:
            self._skip_newlines()
            token = self._peek()
            if token.kind == "eof":
                if nested:
                    raise OclParseError("unexpected end of input, expected '}'", token.line)
                return nodes
            if token.kind == "}":
                if not nested:
                    raise OclParseError("unexpected '}'", token.line)
                self._next()
                return nodes
            nodes.append(self._statement(in_dictionary))
            following = self._peek().kind
            if in_dictionary and following == ",":
                self._next()
            elif following not in ("newline", "}", "eof"):
                raise OclParseError(
                    f"expected end of line, found {self._peek().value!r}", self._peek().line
                )

    def _statement(self, in_dictionary: bool) -> Node:
        token = self._next()
        if token.kind == "string":
            name = token.value[1:-1]
        elif token.kind == "name":
            name = token.value
        else:
            raise OclParseError(f"expected a name, found {token.value or token.kind!r}", token.line)

        separators = ("=", ":") if in_dictionary else ("=",)
        if self._peek().kind in separators:
            self._next()
            return Attribute(name=name, value=self._value(), line=token.line)
        if in_dictionary:
            raise OclParseError(f"expected '=' after {name!r}", token.line)

        labels = []
        while self._peek().kind == "string":
            labels.append(self._next().value[1:-1])
        self._expect("{")
        children = self._body(nested=True)
        return Block(name=name, labels=tuple(labels), children=tuple(children), line=token.line)

    def _value(self) -> Value:
        token = self._next()
        if token.kind in ("string", "heredoc", "number"):
            return Literal(token.kind, token.value)
        if token.kind == "name":
            kind = "boolean" if token.value in ("true", "false") else "identifier"
            return Literal(kind, token.value)
        if token.kind == "[":
            return self._list()
        if token.kind == "{":
            return Dictionary(tuple(self._body(nested=True, in_dictionary=True)))  # type: ignore[arg-type]
        raise OclParseError(f"expected a value, found {token.value or token.kind!r}", token.line)

    def _list(self) -> ListValue:
        items: List[Value] = []
        while True:
            self._skip_newlines()
            if self._peek().kind == "]":
                self._next()
                return ListValue(tuple(items))
            items.append(self._value())
            self._skip_newlines()
            if self._peek().kind == ",":
                self._next()
            elif self._peek().kind != "]":
                token = self._peek()
                raise OclParseError(f"expected ',' or ']', found {token.value or token.kind!r}", token.line)

    # Public API -----------------------------------------------------------
    def parse(self) -> Tuple[Node, ...]:
        self._pos = 0
        return tuple(self._body(nested=False))


def parse(text: str) -> Tuple[Node, ...]:
    """Parse ``text`` and return its top-level nodes in file order."""
    return Parser(text).parse()

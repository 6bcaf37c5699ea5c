"""
Rey Token and Syntax Tree Model
Immutable value types shared by the tokenizer, parser and interpreter
"""

from typing import Any, Optional, Tuple, Union
from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class Span:
    """Start/end character offsets of a token or error (end exclusive)"""
    start: int
    end: int

    def __str__(self) -> str:
        return f"{self.start}..{self.end}"


class TokenKind(Enum):
    """Closed set of Rey token kinds"""
    # Punctuation
    LEFT_PAREN = "("
    RIGHT_PAREN = ")"
    LEFT_BRACE = "{"
    RIGHT_BRACE = "}"
    COMMA = ","
    DOT = "."
    SEMICOLON = ";"
    COLON = ":"

    # Operators
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    PERCENT = "%"
    BANG = "!"
    BANG_EQUAL = "!="
    EQUAL = "="
    EQUAL_EQUAL = "=="
    GREATER = ">"
    GREATER_EQUAL = ">="
    LESS = "<"
    LESS_EQUAL = "<="
    AND_AND = "&&"
    OR_OR = "||"

    # Keywords
    VAR = "var"
    FUNC = "func"
    IF = "if"
    ELSE = "else"
    WHILE = "while"
    FOR = "for"
    IN = "in"
    RETURN = "return"
    BREAK = "break"
    CONTINUE = "continue"
    TRUE = "true"
    FALSE = "false"
    NULL = "null"

    # Literal-carrying
    IDENTIFIER = "identifier"
    STRING = "string"
    NUMBER = "number"

    EOF = "end of input"


KEYWORDS = {
    kind.value: kind for kind in (
        TokenKind.VAR, TokenKind.FUNC, TokenKind.IF, TokenKind.ELSE,
        TokenKind.WHILE, TokenKind.FOR, TokenKind.IN, TokenKind.RETURN,
        TokenKind.BREAK, TokenKind.CONTINUE, TokenKind.TRUE,
        TokenKind.FALSE, TokenKind.NULL,
    )
}

OPERATORS = {
    kind.value: kind for kind in TokenKind
    if kind.value and not kind.value[0].isalpha() and kind is not TokenKind.EOF
}


@dataclass(frozen=True)
class Token:
    """Rey token with its payload (identifier name, string or number) and span"""
    kind: TokenKind
    value: Any
    span: Span

    def __str__(self) -> str:
        if self.value is None:
            return f"{self.kind.name}"
        return f"{self.kind.name}({self.value!r})"


# ============================================================================
# TYPES AND PARAMETERS
# ============================================================================

@dataclass(frozen=True)
class TypeAnnotation:
    """Declared type name, kept as inert metadata"""
    name: str


@dataclass(frozen=True)
class Parameter:
    name: str
    type: Optional[TypeAnnotation] = None


# ============================================================================
# EXPRESSIONS
# ============================================================================

@dataclass(frozen=True)
class Literal:
    """String, number (float), boolean or null (None) literal"""
    value: Union[str, float, bool, None]


@dataclass(frozen=True)
class Variable:
    name: str


@dataclass(frozen=True)
class Binary:
    left: 'Expr'
    op: TokenKind
    right: 'Expr'


@dataclass(frozen=True)
class Unary:
    op: TokenKind
    operand: 'Expr'


@dataclass(frozen=True)
class Assign:
    name: str
    value: 'Expr'


@dataclass(frozen=True)
class Call:
    callee: 'Expr'
    args: Tuple['Expr', ...] = ()


@dataclass(frozen=True)
class Get:
    """Property access; never produced by the parser and rejected at runtime"""
    object: 'Expr'
    name: str


Expr = Union[Literal, Variable, Binary, Unary, Assign, Call, Get]


# ============================================================================
# STATEMENTS
# ============================================================================

@dataclass(frozen=True)
class VarDecl:
    name: str
    type: Optional[TypeAnnotation]
    initializer: Expr


@dataclass(frozen=True)
class FuncDecl:
    name: str
    params: Tuple[Parameter, ...]
    return_type: Optional[TypeAnnotation]
    body: Tuple['Stmt', ...]
    span: Optional[Span] = field(default=None, compare=False)


@dataclass(frozen=True)
class If:
    condition: Expr
    then_branch: Tuple['Stmt', ...]
    else_branch: Optional[Tuple['Stmt', ...]] = None


@dataclass(frozen=True)
class While:
    condition: Expr
    body: Tuple['Stmt', ...]


@dataclass(frozen=True)
class For:
    """Range loop: for variable in range(start, end) { body }"""
    variable: str
    start: Expr
    end: Expr
    body: Tuple['Stmt', ...]


@dataclass(frozen=True)
class Break:
    pass


@dataclass(frozen=True)
class Continue:
    pass


@dataclass(frozen=True)
class Return:
    value: Expr


@dataclass(frozen=True)
class ExprStmt:
    expr: Expr


Stmt = Union[VarDecl, FuncDecl, If, While, For, Break, Continue, Return, ExprStmt]

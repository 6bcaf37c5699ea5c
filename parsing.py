"""
Rey Programming Language Parser
Tokenizer built on pyparsing and a recursive descent parser producing the statement AST
"""

from typing import List, Optional, Tuple
import re

from pyparsing import (
    Regex, ZeroOrMore, MatchFirst, StringEnd, ParseException, ParseResults,
    dbl_slash_comment
)

from syntax_tree import (
    Span, Token, TokenKind, KEYWORDS, OPERATORS,
    TypeAnnotation, Parameter,
    Expr, Literal, Variable, Binary, Unary, Assign, Call,
    Stmt, VarDecl, FuncDecl, If, While, For, Break, Continue, Return, ExprStmt,
)
from error_handling import ReyParseError, lex_error_from_exception
from utilities import ensure_recursion_limit


class ReyTokenizer:
    """Rey tokenizer: one pyparsing alternative per token class, matched over the whole input"""

    ESCAPES = {
        'n': '\n', 't': '\t', 'r': '\r', '\\': '\\', '"': '"', '0': '\0'
    }

    def __init__(self, debug: bool = False):
        self.debug = debug
        self._setup_token_patterns()

    def _setup_token_patterns(self):
        """Setup all token patterns for Rey"""

        # Strings may span lines; an unterminated one fails here and is reported by the caller
        string_literal = Regex(r'"(?:[^"\\]|\\.)*"').set_parse_action(self._make_string)

        number = Regex(r'\d+(?:\.\d+)?').set_parse_action(self._make_number)

        # Identifiers and keywords share one pattern, keywords are resolved afterwards
        word = Regex(r'[^\W\d]\w*').set_parse_action(self._make_word)

        # Two-character operators must be tried before their one-character prefixes
        operators_sorted = sorted(OPERATORS, key=len, reverse=True)
        operator = Regex('|'.join(re.escape(op) for op in operators_sorted)).set_parse_action(
            self._make_operator
        )

        lexeme = MatchFirst([string_literal, number, word, operator])

        self.token_stream = (ZeroOrMore(lexeme) + StringEnd()).parse_with_tabs()
        self.token_stream.ignore(dbl_slash_comment)

    def tokenize(self, text: str) -> List[Token]:
        """Tokenize Rey source text; the result always ends with a single EOF token"""
        try:
            result = self.token_stream.parse_string(text)
        except ParseException as e:
            raise lex_error_from_exception(e, text) from None

        tokens = list(result)
        tokens.append(Token(TokenKind.EOF, None, Span(len(text), len(text))))

        if self.debug:
            for token in tokens:
                print(f"Token: {token} at {token.span}")

        return tokens

    def _make_string(self, s: str, loc: int, toks: ParseResults) -> Token:
        raw = toks[0]
        return Token(TokenKind.STRING, self._process_string_escapes(raw[1:-1]), Span(loc, loc + len(raw)))

    def _make_number(self, s: str, loc: int, toks: ParseResults) -> Token:
        raw = toks[0]
        return Token(TokenKind.NUMBER, float(raw), Span(loc, loc + len(raw)))

    def _make_word(self, s: str, loc: int, toks: ParseResults) -> Token:
        raw = toks[0]
        span = Span(loc, loc + len(raw))
        if raw in KEYWORDS:
            return Token(KEYWORDS[raw], None, span)
        return Token(TokenKind.IDENTIFIER, raw, span)

    def _make_operator(self, s: str, loc: int, toks: ParseResults) -> Token:
        raw = toks[0]
        return Token(OPERATORS[raw], None, Span(loc, loc + len(raw)))

    def _process_string_escapes(self, s: str) -> str:
        """Process escape sequences in strings"""
        result = []
        i = 0
        while i < len(s):
            if s[i] == '\\' and i + 1 < len(s) and s[i + 1] in self.ESCAPES:
                result.append(self.ESCAPES[s[i + 1]])
                i += 2
            else:
                # Unknown escape, keep as-is
                result.append(s[i])
                i += 1

        return ''.join(result)


class ReyParser:
    """
    Recursive descent parser for Rey.

    Usage:
        parser = ReyParser(tokens)
        statements = parser.parse()

    Expression precedence, loosest to tightest:
        assignment (right-associative, target must be a bare variable)
        ||
        &&
        == !=
        < > <= >=
        + -
        * /
        unary - !
        primary
    """

    EQUALITY = (TokenKind.EQUAL_EQUAL, TokenKind.BANG_EQUAL)
    COMPARISON = (TokenKind.LESS, TokenKind.GREATER, TokenKind.LESS_EQUAL, TokenKind.GREATER_EQUAL)
    ADDITIVE = (TokenKind.PLUS, TokenKind.MINUS)
    MULTIPLICATIVE = (TokenKind.STAR, TokenKind.SLASH)

    def __init__(self, tokens: List[Token], debug: bool = False):
        if not tokens or tokens[-1].kind != TokenKind.EOF:
            raise ValueError("token stream must end with an EOF token")
        self.tokens = tokens
        self.debug = debug
        self.current = 0

    def parse(self) -> List[Stmt]:
        """Parse the whole token stream into a list of top-level statements"""
        ensure_recursion_limit()
        statements = []
        try:
            while not self._is_at_end():
                statements.append(self._parse_statement())
        except RecursionError:
            raise ReyParseError("Expression nested too deeply.", self._peek().span) from None
        return statements

    # =========================================================================
    # Statements
    # =========================================================================

    def _parse_statement(self) -> Stmt:
        if self.debug:
            print(f"Parsing statement at {self._peek()}")

        if self._match(TokenKind.VAR):
            return self._parse_var_declaration()
        if self._match(TokenKind.FUNC):
            return self._parse_func_declaration()
        if self._match(TokenKind.IF):
            return self._parse_if_statement()
        if self._match(TokenKind.WHILE):
            return self._parse_while_statement()
        if self._match(TokenKind.FOR):
            return self._parse_for_statement()
        if self._match(TokenKind.BREAK):
            self._consume(TokenKind.SEMICOLON, "Expected ';' after 'break'.")
            return Break()
        if self._match(TokenKind.CONTINUE):
            self._consume(TokenKind.SEMICOLON, "Expected ';' after 'continue'.")
            return Continue()
        if self._match(TokenKind.RETURN):
            return self._parse_return_statement()
        return self._parse_expression_statement()

    def _parse_var_declaration(self) -> VarDecl:
        name = self._consume_identifier("Expected variable name.")
        declared_type = self._parse_type_annotation()

        self._consume(TokenKind.EQUAL, "Expected '=' after variable name.")
        initializer = self._parse_expression()
        self._consume(TokenKind.SEMICOLON, "Expected ';' after variable declaration.")

        return VarDecl(name, declared_type, initializer)

    def _parse_func_declaration(self) -> FuncDecl:
        keyword_span = self._previous().span
        name = self._consume_identifier("Expected function name.")
        self._consume(TokenKind.LEFT_PAREN, "Expected '(' after function name.")

        params = []
        if not self._check(TokenKind.RIGHT_PAREN):
            while True:
                param_name = self._consume_identifier("Expected parameter name.")
                params.append(Parameter(param_name, self._parse_type_annotation()))
                if not self._match(TokenKind.COMMA):
                    break
        self._consume(TokenKind.RIGHT_PAREN, "Expected ')' after parameters.")

        return_type = self._parse_type_annotation()

        self._consume(TokenKind.LEFT_BRACE, "Expected '{' before function body.")
        body = self._parse_block()
        self._consume(TokenKind.RIGHT_BRACE, "Expected '}' after function body.")

        return FuncDecl(name, tuple(params), return_type, body, keyword_span)

    def _parse_if_statement(self) -> If:
        self._consume(TokenKind.LEFT_PAREN, "Expected '(' after 'if'.")
        condition = self._parse_expression()
        self._consume(TokenKind.RIGHT_PAREN, "Expected ')' after condition.")

        self._consume(TokenKind.LEFT_BRACE, "Expected '{' after condition.")
        then_branch = self._parse_block()
        self._consume(TokenKind.RIGHT_BRACE, "Expected '}' after then branch.")

        else_branch = None
        if self._match(TokenKind.ELSE):
            self._consume(TokenKind.LEFT_BRACE, "Expected '{' after 'else'.")
            else_branch = self._parse_block()
            self._consume(TokenKind.RIGHT_BRACE, "Expected '}' after else branch.")

        return If(condition, then_branch, else_branch)

    def _parse_while_statement(self) -> While:
        self._consume(TokenKind.LEFT_PAREN, "Expected '(' after 'while'.")
        condition = self._parse_expression()
        self._consume(TokenKind.RIGHT_PAREN, "Expected ')' after condition.")

        self._consume(TokenKind.LEFT_BRACE, "Expected '{' after condition.")
        body = self._parse_block()
        self._consume(TokenKind.RIGHT_BRACE, "Expected '}' after while body.")

        return While(condition, body)

    def _parse_for_statement(self) -> For:
        variable = self._consume_identifier("Expected variable name after 'for'.")
        self._consume(TokenKind.IN, "Expected 'in' after variable name.")

        # 'range' is an ordinary identifier, only meaningful in this position
        if not (self._check(TokenKind.IDENTIFIER) and self._peek().value == "range"):
            raise self._error("Expected 'range' after 'in'.")
        self._advance()

        self._consume(TokenKind.LEFT_PAREN, "Expected '(' after 'range'.")
        start = self._parse_expression()
        self._consume(TokenKind.COMMA, "Expected ',' after start value.")
        end = self._parse_expression()
        self._consume(TokenKind.RIGHT_PAREN, "Expected ')' after end value.")

        self._consume(TokenKind.LEFT_BRACE, "Expected '{' after range.")
        body = self._parse_block()
        self._consume(TokenKind.RIGHT_BRACE, "Expected '}' after for body.")

        return For(variable, start, end, body)

    def _parse_return_statement(self) -> Return:
        value = self._parse_expression()
        self._consume(TokenKind.SEMICOLON, "Expected ';' after return value.")
        return Return(value)

    def _parse_expression_statement(self) -> ExprStmt:
        expr = self._parse_expression()
        self._consume(TokenKind.SEMICOLON, "Expected ';' after expression.")
        return ExprStmt(expr)

    def _parse_block(self) -> Tuple[Stmt, ...]:
        """Statements up to (not including) the closing brace"""
        statements = []
        while not self._check(TokenKind.RIGHT_BRACE) and not self._is_at_end():
            statements.append(self._parse_statement())
        return tuple(statements)

    def _parse_type_annotation(self) -> Optional[TypeAnnotation]:
        if not self._match(TokenKind.COLON):
            return None
        return TypeAnnotation(self._consume_identifier("Expected type name after ':'"))

    # =========================================================================
    # Expressions
    # =========================================================================

    def _parse_expression(self) -> Expr:
        return self._parse_assignment()

    def _parse_assignment(self) -> Expr:
        expr = self._parse_logic_or()

        if self._match(TokenKind.EQUAL):
            value = self._parse_assignment()
            if isinstance(expr, Variable):
                return Assign(expr.name, value)
            raise self._error("Invalid assignment target.")

        return expr

    def _parse_logic_or(self) -> Expr:
        return self._parse_binary_level(self._parse_logic_and, (TokenKind.OR_OR,))

    def _parse_logic_and(self) -> Expr:
        return self._parse_binary_level(self._parse_equality, (TokenKind.AND_AND,))

    def _parse_equality(self) -> Expr:
        return self._parse_binary_level(self._parse_comparison, self.EQUALITY)

    def _parse_comparison(self) -> Expr:
        return self._parse_binary_level(self._parse_additive, self.COMPARISON)

    def _parse_additive(self) -> Expr:
        return self._parse_binary_level(self._parse_multiplicative, self.ADDITIVE)

    def _parse_multiplicative(self) -> Expr:
        return self._parse_binary_level(self._parse_unary, self.MULTIPLICATIVE)

    def _parse_binary_level(self, operand, operators) -> Expr:
        """Left-associative loop shared by every binary precedence level"""
        expr = operand()
        while self._check_any(*operators):
            op = self._advance().kind
            right = operand()
            expr = Binary(expr, op, right)
        return expr

    def _parse_unary(self) -> Expr:
        if self._match(TokenKind.MINUS):
            # Negation is desugared to a subtraction from zero
            return Binary(Literal(0.0), TokenKind.MINUS, self._parse_unary())
        if self._match(TokenKind.BANG):
            return Unary(TokenKind.BANG, self._parse_unary())
        return self._parse_primary()

    def _parse_primary(self) -> Expr:
        token = self._peek()

        if token.kind == TokenKind.IDENTIFIER:
            self._advance()
            if self._match(TokenKind.LEFT_PAREN):
                return Call(Variable(token.value), self._parse_arguments())
            return Variable(token.value)

        if token.kind in (TokenKind.STRING, TokenKind.NUMBER):
            self._advance()
            return Literal(token.value)

        if self._match(TokenKind.TRUE):
            return Literal(True)
        if self._match(TokenKind.FALSE):
            return Literal(False)
        if self._match(TokenKind.NULL):
            return Literal(None)

        if self._match(TokenKind.LEFT_PAREN):
            expr = self._parse_expression()
            self._consume(TokenKind.RIGHT_PAREN, "Expected ')' after expression.")
            return expr

        raise self._error("Expected expression.")

    def _parse_arguments(self) -> Tuple[Expr, ...]:
        """Comma-separated arguments after an already consumed '('"""
        args = []
        if not self._check(TokenKind.RIGHT_PAREN):
            while True:
                args.append(self._parse_expression())
                if not self._match(TokenKind.COMMA):
                    break
        self._consume(TokenKind.RIGHT_PAREN, "Expected ')' after function arguments.")
        return tuple(args)

    # =========================================================================
    # Token Navigation
    # =========================================================================

    def _peek(self) -> Token:
        return self.tokens[self.current]

    def _previous(self) -> Token:
        return self.tokens[max(self.current - 1, 0)]

    def _is_at_end(self) -> bool:
        return self._peek().kind == TokenKind.EOF

    def _check(self, kind: TokenKind) -> bool:
        """Compare kinds only, ignoring any payload"""
        if self._is_at_end():
            return False
        return self._peek().kind == kind

    def _check_any(self, *kinds: TokenKind) -> bool:
        return any(self._check(kind) for kind in kinds)

    def _advance(self) -> Token:
        if not self._is_at_end():
            self.current += 1
        return self._previous()

    def _match(self, kind: TokenKind) -> bool:
        if self._check(kind):
            self._advance()
            return True
        return False

    def _consume(self, kind: TokenKind, message: str) -> Token:
        if self._check(kind):
            return self._advance()
        raise self._error(message)

    def _consume_identifier(self, message: str) -> str:
        return self._consume(TokenKind.IDENTIFIER, message).value

    def _error(self, message: str) -> ReyParseError:
        return ReyParseError(message, self._peek().span)


def parse(tokens: List[Token], debug: bool = False) -> List[Stmt]:
    """Parse a token stream into a program"""
    return ReyParser(tokens, debug).parse()


class ReyFrontEnd:
    """Main Rey front end combining tokenizer and parser"""

    def __init__(self, debug: bool = False):
        self.debug = debug

    def parse_file(self, filepath: str) -> List[Stmt]:
        """Parse a Rey source file"""
        with open(filepath, 'r', encoding='utf-8') as f:
            content = f.read()
        return self.parse_string(content)

    def parse_string(self, text: str) -> List[Stmt]:
        """Parse Rey source code from string"""
        return parse(self.tokenize(text), self.debug)

    def tokenize(self, text: str) -> List[Token]:
        """Tokenize Rey source code"""
        return create_tokenizer(self.debug).tokenize(text)


# Factory functions for creating parsers
def create_parser(debug: bool = False) -> ReyFrontEnd:
    """Create a Rey parser"""
    return ReyFrontEnd(debug=debug)


def create_debug_parser() -> ReyFrontEnd:
    """Create a Rey parser with debug enabled"""
    return ReyFrontEnd(debug=True)


def create_tokenizer(debug: bool = False) -> ReyTokenizer:
    """Create a Rey tokenizer"""
    return ReyTokenizer(debug)


def tokenize(text: str) -> List[Token]:
    """Tokenize Rey source code with a fresh tokenizer"""
    return create_tokenizer().tokenize(text)


# Utility functions for working with the AST
def pretty_print_ast(node, indent: int = 0) -> str:
    """Pretty print an AST node for debugging"""
    pad = "  " * indent

    if isinstance(node, (list, tuple)):
        return "".join(pretty_print_ast(child, indent) for child in node)

    if isinstance(node, Literal):
        return f"{pad}Literal({node.value!r})\n"
    if isinstance(node, Variable):
        return f"{pad}Variable({node.name})\n"

    fields = []
    children = []
    for name, value in vars(node).items():
        if name == 'span':
            continue
        if isinstance(value, TokenKind):
            fields.append(f"{name}={value.value}")
        elif isinstance(value, TypeAnnotation):
            fields.append(f"{name}={value.name}")
        elif isinstance(value, str):
            fields.append(f"{name}={value}")
        elif value is None or value == ():
            continue
        elif isinstance(value, tuple) and isinstance(value[0], Parameter):
            params = ", ".join(
                p.name if p.type is None else f"{p.name}: {p.type.name}" for p in value
            )
            fields.append(f"{name}=({params})")
        else:
            children.append((name, value))

    result = f"{pad}{type(node).__name__}"
    if fields:
        result += f"({', '.join(fields)})"
    result += "\n"

    for name, value in children:
        result += f"{pad}  {name}:\n"
        result += pretty_print_ast(value, indent + 2)

    return result

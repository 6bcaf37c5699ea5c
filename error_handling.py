"""
Error handling for the Rey toolchain
Exception types for each stage and source-context formatting for diagnostics
"""

from typing import Dict, Optional, Tuple
from pyparsing import ParseException
from syntax_tree import Span


# ============================================================================
# EXCEPTION TYPES
# ============================================================================

class ReyError(Exception):
    """Base class for all Rey errors"""
    stage = "Error"

    def __init__(self, message: str, span=None):
        self.message = message
        self.span = span
        super().__init__(message)


class ReyLexError(ReyError):
    """Unexpected character or unterminated string while tokenizing"""
    stage = "Lexer error"


class ReyParseError(ReyError):
    """Missing expected token or unmatched grammar rule, with the offending span"""
    stage = "Parse error"


class ReyRuntimeError(ReyError):
    """Error raised while executing a program"""
    stage = "Runtime error"


# ============================================================================
# DATA STRUCTURES (Immutable Dictionaries)
# ============================================================================

def make_parse_error(
    message: str,
    location: int,
    line: int,
    column: int,
    got: Optional[str] = None,
    context: Optional[str] = None,
    stage: str = "Parse error"
) -> Dict:
    """Create an immutable diagnostic record"""
    return {
        'message': message,
        'location': location,
        'line': line,
        'column': column,
        'got': got,
        'context': context,
        'stage': stage
    }


def format_parse_error(error: Dict, filename: str = "<input>") -> str:
    """Format a diagnostic record as text"""
    error_msg = f"{error['stage']} at {filename}:{error['line']}:{error['column']}:\n"
    error_msg += f"  {error['message']}\n"

    if error['got']:
        error_msg += f"  Got: {error['got']}\n"

    if error['context']:
        error_msg += f"{error['context']}\n"

    return error_msg


# ============================================================================
# PURE FUNCTIONS
# ============================================================================

def offset_to_line_col(source_text: str, offset: int) -> Tuple[int, int]:
    """Convert a character offset into 1-based (line, column)"""
    offset = max(0, min(offset, len(source_text)))
    line = source_text.count('\n', 0, offset) + 1
    line_start = source_text.rfind('\n', 0, offset) + 1
    return line, offset - line_start + 1


def get_context_lines(source_text: str, line_num: int, col_num: int, context_lines: int = 2) -> str:
    """Get context lines around the error"""
    lines = source_text.split('\n')
    start_line = max(0, line_num - context_lines - 1)
    end_line = min(len(lines), line_num + context_lines)

    context_parts = []
    for i in range(start_line, end_line):
        line_prefix = f"{i+1:4d}: "
        if i == line_num - 1:
            context_parts.append(f"{line_prefix}{lines[i]}")
            context_parts.append(f"{'':6}{' ' * (col_num - 1)}^ Error here")
        else:
            context_parts.append(f"{line_prefix}{lines[i]}")

    return '\n'.join(context_parts)


def extract_got(source_text: str, offset: int) -> str:
    """Extract what was actually found at the error location"""
    if offset >= len(source_text):
        return "end of input"

    got_text = source_text[offset:offset + 10].split('\n')[0].strip()
    if got_text:
        return f"'{got_text}'"
    return "end of line"


def describe_error(error: ReyError, source_text: str) -> Dict:
    """Build a diagnostic record for an error raised on source_text"""
    if error.span is None:
        return make_parse_error(error.message, 0, 0, 0, stage=error.stage)

    line_num, col_num = offset_to_line_col(source_text, error.span.start)
    return make_parse_error(
        message=error.message,
        location=error.span.start,
        line=line_num,
        column=col_num,
        got=extract_got(source_text, error.span.start),
        context=get_context_lines(source_text, line_num, col_num),
        stage=error.stage
    )


def format_error(error: ReyError, source_text: str, filename: str = "<input>") -> str:
    """Render any Rey error with location and source context when it has a span"""
    if error.span is None:
        return f"{error.stage}: {error.message}"
    return format_parse_error(describe_error(error, source_text), filename)


def lex_error_from_exception(exc: ParseException, source_text: str) -> ReyLexError:
    """Convert the pyparsing failure that stopped tokenizing into a Rey lexical error"""
    loc = exc.loc
    if loc < len(source_text) and source_text[loc] == '"':
        return ReyLexError("Unterminated string", Span(loc, len(source_text)))

    return ReyLexError(f"Unexpected character '{source_text[loc]}'", Span(loc, loc + 1))

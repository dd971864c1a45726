"""
Size metrics for submitted strategy code.

Token count is the size measure snapshotted into gradings; lines of code is
kept for submission listings.
"""

import re

_BLOCK_COMMENT = re.compile(r'/\*.*?\*/|\(\*.*?\*\)', re.DOTALL)
_LINE_COMMENT = re.compile(r'//[^\n]*|#[^\n]*')
_TOKEN = re.compile(
    r'''
    "(?:\\.|[^"\\\n])*"          # double-quoted string
    | '(?:\\.|[^'\\\n])*'        # single-quoted string
    | `(?:\\.|[^`\\])*`          # template literal
    | \d+(?:\.\d+)?(?:[eE][+-]?\d+)?
    | [A-Za-z_$][\w$]*
    | ===|!==|\*\*=|>>>=|<<=|>>=|\.\.\.|=>|&&|\|\||\?\?|[-+*/%&|^=!<>]=|\+\+|--|<<|>>
    | \S
    ''',
    re.VERBOSE,
)
_COMMENT_PREFIXES = ('//', '/*', '*', '#', ';', '(*')


def strip_comments(code: str) -> str:
    """Remove block and line comments.

    Comment markers inside string literals are not special-cased.
    """
    return _LINE_COMMENT.sub('', _BLOCK_COMMENT.sub(' ', code))


def count_tokens(code: str) -> int:
    """Number of lexical tokens in the code, ignoring comments and whitespace."""
    return len(_TOKEN.findall(strip_comments(code)))


def count_lines_of_code(code: str) -> int:
    """Number of non-blank lines that do not start with a comment marker."""
    return sum(
        1 for line in code.split('\n')
        if line.strip() and not line.strip().startswith(_COMMENT_PREFIXES)
    )

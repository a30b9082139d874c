"""
SQL sanitizer.

Certifies that a piece of text is a single, read-only SELECT/WITH statement
before it reaches a live database. The pipeline is linear; each stage either
transforms the text or rejects it with a ValidationRejected naming the stage:

1. fence_stripping       drop Markdown code fences and wrapping quotes
2. statement_anchor      discard everything before the first SELECT/WITH
3. terminator            exactly one trailing ";"
4. read_only             no modifying or file-access keywords
5. schema_enumeration    no UNION ALL SELECT against a system catalog
6. comment_injection     no ";" followed by "--"
7. single_statement      no more than one non-empty ";"-separated segment
8. leading_keyword       first token is SELECT or WITH

This is a textual guard, not a parser. Keywords inside string literals are
not distinguished from real ones, so ``WHERE note = 'DROP'`` is rejected,
as is a ";" inside a literal. Both over-rejections are accepted.

Stages 1-2 only apply to raw model output (``sanitize``). Caller-supplied
SQL goes through stages 3-8 (``validate_sql``) so nothing a caller wrote is
silently discarded.
"""

import logging
import re
from enum import Enum

import sqlparse

from sqlai.errors import ValidationRejected

logger = logging.getLogger(__name__)


class SanitizerStage(str, Enum):
    """Pipeline stages, in execution order."""

    FENCE_STRIPPING = "fence_stripping"
    STATEMENT_ANCHOR = "statement_anchor"
    TERMINATOR = "terminator"
    READ_ONLY = "read_only"
    SCHEMA_ENUMERATION = "schema_enumeration"
    COMMENT_INJECTION = "comment_injection"
    SINGLE_STATEMENT = "single_statement"
    LEADING_KEYWORD = "leading_keyword"


ALLOWED_LEADING_KEYWORDS = ("SELECT", "WITH")

# A fenced block anywhere in the output: ```sql ... ```
_FENCED_BLOCK = re.compile(r"```[A-Za-z0-9_+-]*[ \t]*\n?(.*?)```", re.DOTALL)
_LEADING_FENCE = re.compile(r"^```[A-Za-z0-9_+-]*\s*")
_TRAILING_FENCE = re.compile(r"\s*```$")
_QUOTE_CHARS = "\"'`"

# SELECT as a whole word, or WITH opening a common table expression
_STATEMENT_ANCHOR = re.compile(
    r"\bSELECT\b|\bWITH\s+(?:RECURSIVE\s+)?[\w\"`\[\]]+\s*(?:\([^)]*\)\s*)?AS\s*\(",
    re.IGNORECASE,
)

_BLOCKED_KEYWORDS = re.compile(
    r"\b(INSERT|UPDATE|DELETE|DROP|TRUNCATE|ALTER|CREATE|GRANT|REVOKE|EXEC|EXECUTE|EVAL)\b",
    re.IGNORECASE,
)
_BLOCKED_PHRASES = re.compile(
    r"\bINTO\s+OUTFILE\b|\bINTO\s+DUMPFILE\b|\bLOAD_FILE\b",
    re.IGNORECASE,
)

_UNION_ALL_SELECT = re.compile(r"\bUNION\s+ALL\s+SELECT\b", re.IGNORECASE)
_SYSTEM_CATALOG = re.compile(
    r"\b(INFORMATION_SCHEMA|PG_CATALOG|PG_CLASS|PG_TABLES|PG_ATTRIBUTE|SQLITE_MASTER|SQLITE_SCHEMA)\b",
    re.IGNORECASE,
)

_COMMENT_INJECTION = re.compile(r";\s*--")


def _reject(stage: SanitizerStage, reason: str, sql: str) -> ValidationRejected:
    logger.warning(
        f"SQL rejected at {stage.value}: {reason}",
        extra={"stage": stage.value, "sql": sql[:200]},
    )
    return ValidationRejected(stage=stage.value, reason=reason, sql=sql)


# ============================================================================
# Stages
# ============================================================================


def strip_fences(text: str) -> str:
    """Stage 1: remove code fences and quotes that wrap the whole output."""
    cleaned = text.strip()

    block = _FENCED_BLOCK.search(cleaned)
    if block:
        cleaned = block.group(1).strip()
    else:
        cleaned = _LEADING_FENCE.sub("", cleaned)
        cleaned = _TRAILING_FENCE.sub("", cleaned).strip()

    # Only paired quotes are removed; a trailing quote may close a string literal
    while len(cleaned) >= 2 and cleaned[0] in _QUOTE_CHARS and cleaned[-1] == cleaned[0]:
        cleaned = cleaned[1:-1].strip()
    return cleaned


def anchor_statement(text: str) -> str:
    """Stage 2: start the text at the first SELECT/WITH."""
    match = _STATEMENT_ANCHOR.search(text)
    if match is None:
        raise _reject(SanitizerStage.STATEMENT_ANCHOR, "no statement found", text)
    return text[match.start():]


def _ends_with_line_comment(sql: str) -> bool:
    tokens = [t for t in sqlparse.parse(sql)[0].flatten() if not t.is_whitespace]
    return bool(tokens) and tokens[-1].ttype in sqlparse.tokens.Comment.Single


def normalize_terminator(sql: str) -> str:
    """
    Stage 3: trim and end with exactly one semicolon.

    A statement ending in a "--" comment gets its terminator on a new line,
    otherwise the comment would swallow it.
    """
    stripped = sql.strip()
    while stripped.endswith(";"):
        stripped = stripped[:-1].rstrip()
    if not stripped:
        raise _reject(SanitizerStage.TERMINATOR, "Empty SQL query", sql)
    if _ends_with_line_comment(stripped):
        return stripped + "\n;"
    return stripped + ";"


def enforce_read_only(sql: str) -> None:
    """Stage 4: reject modifying statements and file access."""
    for pattern in (_BLOCKED_KEYWORDS, _BLOCKED_PHRASES):
        match = pattern.search(sql)
        if match:
            keyword = " ".join(match.group(0).upper().split())
            raise _reject(
                SanitizerStage.READ_ONLY,
                f"Query contains potentially dangerous operations: {keyword}",
                sql,
            )


def reject_schema_enumeration(sql: str) -> None:
    """Stage 5: reject UNION ALL SELECT queries against system catalogs."""
    if _UNION_ALL_SELECT.search(sql) and _SYSTEM_CATALOG.search(sql):
        raise _reject(
            SanitizerStage.SCHEMA_ENUMERATION,
            "UNION ALL SELECT against a system catalog is not allowed",
            sql,
        )


def reject_comment_injection(sql: str) -> None:
    """Stage 6: reject a terminator followed by a line comment."""
    if _COMMENT_INJECTION.search(sql):
        raise _reject(
            SanitizerStage.COMMENT_INJECTION,
            "Comment after statement terminator is not allowed",
            sql,
        )


def enforce_single_statement(sql: str) -> None:
    """Stage 7: at most one non-empty segment between semicolons."""
    segments = [segment for segment in sql.split(";") if segment.strip()]
    if len(segments) > 1:
        raise _reject(
            SanitizerStage.SINGLE_STATEMENT,
            "Multiple SQL statements are not allowed",
            sql,
        )


def check_leading_keyword(sql: str) -> None:
    """Stage 8: the first token must be SELECT or WITH."""
    statements = sqlparse.parse(sql)
    first = statements[0].token_first(skip_ws=True, skip_cm=True) if statements else None
    keyword = first.value.split(None, 1)[0].upper() if first is not None else ""
    if keyword not in ALLOWED_LEADING_KEYWORDS:
        raise _reject(
            SanitizerStage.LEADING_KEYWORD,
            "Only SELECT queries are allowed",
            sql,
        )


# ============================================================================
# Pipelines
# ============================================================================


def clean_sql(raw: str) -> str:
    """
    Strip formatting artifacts from raw model output (stages 1-3).

    Cleaning an already-clean statement returns it unchanged.

    Raises:
        ValidationRejected: If no SELECT/WITH statement is present
    """
    text = strip_fences(raw or "")
    text = anchor_statement(text)
    return normalize_terminator(text)


def validate_sql(sql: str) -> str:
    """
    Certify a statement (stages 3-8) and return it with its terminator normalized.

    Raises:
        ValidationRejected: Naming the first failing stage
    """
    statement = normalize_terminator(sql or "")
    enforce_read_only(statement)
    reject_schema_enumeration(statement)
    reject_comment_injection(statement)
    enforce_single_statement(statement)
    check_leading_keyword(statement)
    return statement


def sanitize(raw: str) -> str:
    """Run the full pipeline over raw model output and return the clean statement."""
    return validate_sql(clean_sql(raw))

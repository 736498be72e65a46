"""
=============================================================================
PATH MATCHER
=============================================================================

Matches configured source patterns (rewrites, redirects, header rules,
unlisted entries) against request paths.

A source is tried two ways:

    ┌──────────────────────────────────────────────────────────────────────┐
    │  1. PATH TEMPLATE (only when captures are wanted)                   │
    │                                                                      │
    │     "/blog/:year/:slug"      "/blog/2024/hello"                      │
    │           │                          │                               │
    │           └──────── regex ───────────┘                               │
    │     ^/blog/([^/]+?)/([^/]+?)(?:/)?$    → year=2024, slug=hello      │
    │                                                                      │
    │  2. GLOB (fallback, and the only strategy without captures)         │
    │                                                                      │
    │     "/**/*.html"             "/docs/guide/intro.html"                │
    │     ^(?:/(?!\\.)[^/]*)*/(?!\\.)[^/]*\\.html$                          │
    └──────────────────────────────────────────────────────────────────────┘

=============================================================================
TEMPLATE SYNTAX
=============================================================================

    ┌────────────┬──────────────────────────┬───────────────────────────┐
    │ Pattern    │ Matches                  │ Capture                   │
    ├────────────┼──────────────────────────┼───────────────────────────┤
    │ :name      │ one segment              │ name                      │
    │ :name?     │ zero or one segment      │ name ("" when absent)     │
    │ :name+     │ one or more segments     │ name ("a/b")              │
    │ :name*     │ zero or more segments    │ name                      │
    │ *          │ one segment              │ "0", "1", ... in order    │
    │ * (last)   │ rest of the path         │ "0", "1", ...             │
    │ **         │ rest of the path         │ "0", "1", ...             │
    │ +(a|b) ... │ extglob, as below        │ (none)                    │
    └────────────┴──────────────────────────┴───────────────────────────┘

Template matching ignores case and tolerates one trailing slash.

=============================================================================
GLOB SYNTAX
=============================================================================

    *          any run of characters inside one segment
    ?          one character inside one segment
    **         any number of whole segments (globstar)
    [abc]      character class; [!abc] or [^abc] negates; ranges allowed
               (an unclosed or invalid class, such as "[z-a]", is literal)
    ?(a|b)     zero or one of the alternatives
    *(a|b)     zero or more
    +(a|b)     one or more
    @(a|b)     exactly one
    !(a|b)     anything except the alternatives
    \\x         literal x
    !pattern   negates the whole match (never extracts captures)

Wildcards do not match a leading "." in a segment unless the pattern
segment itself starts with "." ("*" skips ".env", ".*" matches it).
Glob matching is case-sensitive.

=============================================================================
PATH NORMALIZATION
=============================================================================

Both sides are normalized before matching:

    source:   "docs/*"      → "/docs/*"       (leading "!" kept in front)
    request:  "//a/./b/../c/" → "/a/c"        (POSIX-resolved, no trailing /)

Compiled regexes are cached per pattern string, so matching the same rule
set on every request costs a dictionary lookup per rule.

=============================================================================
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional, Tuple, Union
import logging
import posixpath
import re


logger = logging.getLogger(__name__)


# Destination has a URI scheme ("https:", "mailto:") and is left untouched
_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")

# ":name" placeholder in a destination, with an optional modifier
_PLACEHOLDER = re.compile(r":([A-Za-z0-9_]+)[+*?]?")

# ":name" parameter in a template source
_PARAM = re.compile(r":([A-Za-z0-9_]+)([?*+])?")

_EXTGLOB_KINDS = "?*+@!"

# One path segment that does not start with "."
_SEGMENT = r"(?!\.)[^/]*"


@dataclass
class PatternMatch:
    """
    Result of matching a source pattern against a path.

    Truthy when the pattern matched. `params` holds the template captures
    in declaration order; it is empty for glob-only and negated matches.
    """

    matched: bool = False
    params: List[Tuple[str, str]] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.matched

    def as_dict(self) -> dict:
        return dict(self.params)


# =============================================================================
# NORMALIZATION
# =============================================================================

def _split_negation(pattern: str) -> Tuple[int, str]:
    """Count leading "!" negations; "!(" starts an extglob instead."""
    negations = 0
    while pattern.startswith("!") and not pattern.startswith("!("):
        pattern = pattern[1:]
        negations += 1
    return negations, pattern


def slash_glob(source: str) -> str:
    """
    Give a source pattern a leading slash, keeping a "!" prefix in front.

    Examples:
        >>> slash_glob("docs/*.md")
        '/docs/*.md'
        >>> slash_glob("!node_modules/**")
        '!/node_modules/**'
    """
    negations, stripped = _split_negation(source)
    if not stripped.startswith("/"):
        stripped = "/" + stripped
    return "!" * negations + stripped


def normalize(request_path: str) -> str:
    """
    Resolve a request path the way POSIX path resolution does.

    "." and ".." segments are applied, slash runs collapse, a trailing
    slash is dropped, and the result always starts with exactly one "/".
    """
    resolved = posixpath.normpath("/" + request_path)
    # normpath keeps a leading "//" (POSIX allows it); we never do
    return "/" + resolved.lstrip("/")


# =============================================================================
# TOKENIZER
# =============================================================================
#
# A segment is split into tokens once; the glob and template compilers
# render the same tokens differently:
#
#     "+(a|b)-:id.*"  →  ext(+, [a], [b])  lit("-")  param(id)  lit(".")  star
#
# =============================================================================

def _find_close(text: str, open_index: int) -> int:
    """Index of the ")" closing the "(" at open_index, or -1."""
    depth = 0
    i = open_index
    while i < len(text):
        char = text[i]
        if char == "\\":
            i += 2
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def _split_alternatives(body: str) -> List[str]:
    """Split an extglob body on top-level "|"."""
    alternatives = []
    depth = 0
    start = 0
    i = 0
    while i < len(body):
        char = body[i]
        if char == "\\":
            i += 2
            continue
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif char == "|" and depth == 0:
            alternatives.append(body[start:i])
            start = i + 1
        i += 1
    alternatives.append(body[start:])
    return alternatives


def _parse_class(text: str, start: int) -> Tuple[Optional[str], int]:
    """
    Translate a "[...]" class starting at `start` into regex syntax.

    Returns (None, start) when the bracket is never closed or the class is
    not valid (a reversed range such as "[z-a]"), in which case "[" is a
    literal.
    """
    i = start + 1
    negate = i < len(text) and text[i] in "!^"
    if negate:
        i += 1
    body_start = i
    # A "]" right after the opening bracket is a member, not the end
    if i < len(text) and text[i] == "]":
        i += 1
    while i < len(text) and text[i] != "]":
        i += 2 if text[i] == "\\" else 1
    if i >= len(text):
        return None, start

    members = []
    body = text[body_start:i]
    j = 0
    while j < len(body):
        char = body[j]
        if char == "\\" and j + 1 < len(body):
            members.append(re.escape(body[j + 1]))
            j += 2
            continue
        members.append("\\" + char if char in "[]^\\" else char)
        j += 1

    prefix = "[^/" if negate else "["
    translated = prefix + "".join(members) + "]"
    try:
        re.compile(translated)
    except re.error:
        return None, start
    return translated, i + 1


def _tokenize(text: str, template: bool = False) -> list:
    tokens: list = []
    literal: List[str] = []

    def flush():
        if literal:
            tokens.append(("lit", "".join(literal)))
            literal.clear()

    i = 0
    while i < len(text):
        char = text[i]

        if char == "\\" and i + 1 < len(text):
            literal.append(text[i + 1])
            i += 2
            continue

        if char in _EXTGLOB_KINDS and text[i + 1:i + 2] == "(":
            close = _find_close(text, i + 1)
            if close != -1:
                flush()
                alternatives = [
                    _tokenize(alternative)
                    for alternative in _split_alternatives(text[i + 2:close])
                ]
                tokens.append(("ext", char, alternatives))
                i = close + 1
                continue

        if char == "*":
            flush()
            while i < len(text) and text[i] == "*":
                i += 1
            tokens.append(("star",))
            continue

        if char == "?":
            flush()
            tokens.append(("qmark",))
            i += 1
            continue

        if char == "[":
            cls, end = _parse_class(text, i)
            if cls is not None:
                flush()
                tokens.append(("class", cls))
                i = end
                continue

        if template and char == ":":
            match = _PARAM.match(text, i)
            if match:
                flush()
                tokens.append(("param", match.group(1), match.group(2) or ""))
                i = match.end()
                continue

        literal.append(char)
        i += 1

    flush()
    return tokens


def _render_glob(tokens: list) -> str:
    """Render tokens as a non-capturing regex for one segment."""
    parts = []
    for index, token in enumerate(tokens):
        kind = token[0]
        if kind == "lit":
            parts.append(re.escape(token[1]))
        elif kind == "star":
            parts.append("[^/]*")
        elif kind == "qmark":
            parts.append("[^/]")
        elif kind == "class":
            parts.append(token[1])
        elif kind == "param":
            # Only reachable from template segments rendered inside a lookahead
            parts.append("[^/]+?")
        elif kind == "ext":
            parts.append(_render_extglob(token, tokens[index + 1:]))
    return "".join(parts)


def _render_extglob(token: tuple, rest: list) -> str:
    _, kind, alternatives = token
    body = "|".join(_render_glob(alternative) for alternative in alternatives)

    if kind == "!":
        # Anything, as long as the segment from here is not one of the
        # alternatives followed by the rest of the pattern
        tail = _render_glob(rest)
        return f"(?:(?!(?:{body}){tail}(?:/|$))[^/]*?)"

    quantifier = {"?": "?", "*": "*", "+": "+", "@": ""}[kind]
    return f"(?:{body}){quantifier}"


# =============================================================================
# GLOB COMPILER
# =============================================================================

def _glob_segment(segment: str) -> str:
    tokens = _tokenize(segment)
    if tokens == [("star",)]:
        body = "[^/]+"
    else:
        body = _render_glob(tokens)
    if segment.startswith((".", "\\.")):
        return body
    return r"(?!\.)" + body


@lru_cache(maxsize=1024)
def compile_glob(pattern: str) -> "re.Pattern[str]":
    """
    Compile a slashed glob (no "!" prefix) into an anchored regex.

    Examples:
        >>> bool(compile_glob("/**/*.html").match("/docs/intro.html"))
        True
        >>> bool(compile_glob("/*").match("/.env"))
        False
    """
    pieces = []
    for segment in pattern[1:].split("/"):
        if segment == "**":
            pieces.append(f"(?:/{_SEGMENT})*")
        else:
            pieces.append("/" + _glob_segment(segment))
    return re.compile("^" + "".join(pieces) + "$")


# =============================================================================
# TEMPLATE COMPILER
# =============================================================================

class _TemplateBuilder:
    """
    Collects capture keys while a template is rendered.

    Regex group names must be identifiers and unique, so every capture
    becomes "_g<n>" and `keys[n]` remembers the key it stands for.
    """

    def __init__(self):
        self.keys: List[str] = []
        self._unnamed = 0

    def group(self, name: Optional[str], body: str) -> str:
        if name is None:
            name = str(self._unnamed)
            self._unnamed += 1
        self.keys.append(name)
        return f"(?P<_g{len(self.keys) - 1}>{body})"

    def segment(self, tokens: list, last_segment: bool) -> str:
        parts = []
        for index, token in enumerate(tokens):
            kind = token[0]
            is_last_token = last_segment and index == len(tokens) - 1
            if kind == "lit":
                parts.append(re.escape(token[1]))
            elif kind == "star":
                parts.append(self.group(None, ".*" if is_last_token else "[^/]*"))
            elif kind == "qmark":
                parts.append("[^/]")
            elif kind == "class":
                parts.append(token[1])
            elif kind == "param":
                capture = self.group(token[1], "[^/]+?")
                parts.append(capture + "?" if token[2] == "?" else capture)
            elif kind == "ext":
                parts.append(_render_extglob(token, tokens[index + 1:]))
        return "".join(parts)


@lru_cache(maxsize=1024)
def compile_template(pattern: str) -> Tuple["re.Pattern[str]", Tuple[str, ...]]:
    """
    Compile a slashed path template into (regex, capture keys).

    Examples:
        >>> regex, keys = compile_template("/blog/:slug")
        >>> keys
        ('slug',)
        >>> regex.match("/blog/hello").group("_g0")
        'hello'
    """
    builder = _TemplateBuilder()

    if len(pattern) > 1 and pattern.endswith("/"):
        pattern = pattern[:-1]

    segments = pattern[1:].split("/")
    pieces = []
    for position, segment in enumerate(segments):
        last_segment = position == len(segments) - 1
        whole = _PARAM.fullmatch(segment)

        if segment == "**":
            pieces.append(f"(?:/{builder.group(None, '.*')})?")
        elif whole:
            name, modifier = whole.group(1), whole.group(2)
            if modifier == "?":
                pieces.append(f"(?:/{builder.group(name, '[^/]+?')})?")
            elif modifier == "+":
                pieces.append("/" + builder.group(name, "[^/]+(?:/[^/]+)*"))
            elif modifier == "*":
                pieces.append(f"(?:/{builder.group(name, '[^/]+(?:/[^/]+)*')})?")
            else:
                pieces.append("/" + builder.group(name, "[^/]+?"))
        elif segment == "*":
            pieces.append("/" + builder.group(None, ".*" if last_segment else "[^/]*"))
        else:
            tokens = _tokenize(segment, template=True)
            pieces.append("/" + builder.segment(tokens, last_segment))

    regex = re.compile("^" + "".join(pieces) + "(?:/)?$", re.IGNORECASE)
    return regex, tuple(builder.keys)


# =============================================================================
# MATCHING
# =============================================================================

def matches(source: str, request_path: str, extract_segments: bool = False) -> PatternMatch:
    """
    Match a configured source against a request path.

    Args:
        source: Glob or template, with or without leading slash or "!".
        request_path: Decoded request path.
        extract_segments: Try the source as a path template first and
                          return its captures.

    Returns:
        PatternMatch; falsy when nothing matched.
    """
    negations, stripped = _split_negation(slash_glob(source))
    path = normalize(request_path)

    if negations % 2:
        return PatternMatch(matched=not compile_glob(stripped).match(path))

    if extract_segments:
        regex, keys = compile_template(stripped)
        found = regex.match(path)
        if found:
            params = [
                (key, found.group(f"_g{index}") or "")
                for index, key in enumerate(keys)
            ]
            return PatternMatch(matched=True, params=params)

    return PatternMatch(matched=bool(compile_glob(stripped).match(path)))


def setting_applies(setting: Union[bool, list, None], request_path: str) -> bool:
    """
    Resolve a "boolean or list of globs" setting for a path.

    A boolean answers for every path, a list enables the feature only for
    paths matching one of its globs, and None means enabled.
    """
    if isinstance(setting, bool):
        return setting
    if isinstance(setting, list):
        return any(matches(source, request_path) for source in setting)
    return True


def fill_placeholders(destination: str, params: dict) -> str:
    """
    Substitute ":name" placeholders with captured values.

    Placeholders without a capture are left as written, which keeps ports
    such as "https://example.com:8443/" intact.
    """

    def substitute(match: "re.Match[str]") -> str:
        key = match.group(1)
        if key in params:
            return params[key]
        logger.debug(f"No capture for placeholder :{key} in {destination!r}")
        return match.group(0)

    return _PLACEHOLDER.sub(substitute, destination)


def has_scheme(destination: str) -> bool:
    return bool(_SCHEME.match(destination))


def to_target(source: str, destination: str, request_path: str) -> Optional[str]:
    """
    Compute the destination for a request path, or None if `source` misses.

    Destinations with a URI scheme are filled in as written. Others get a
    leading slash, and a capture can never turn them into a
    protocol-relative "//host" path unless the destination itself starts
    with "//".
    """
    found = matches(source, request_path, extract_segments=True)
    if not found:
        return None

    params = found.as_dict()

    if has_scheme(destination):
        return fill_placeholders(destination, params)

    template = destination if destination.startswith("/") else "/" + destination
    target = fill_placeholders(template, params)
    if not template.startswith("//"):
        target = "/" + target.lstrip("/")
    return target

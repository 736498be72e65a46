"""
=============================================================================
HANDLER CONFIGURATION
=============================================================================

Per-handler configuration: where files live and how request paths map onto
them.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   In code:                                                          │
    │       ServeConfig(public="dist", clean_urls=True, etag=True)        │
    │                                                                      │
    │   From a parsed JSON document (serve.json style, camelCase keys):   │
    │       ServeConfig.from_dict({                                       │
    │           "public": "dist",                                         │
    │           "cleanUrls": true,                                        │
    │           "rewrites": [{"source": "app/**",                         │
    │                         "destination": "/index.html"}],             │
    │           "headers": [{"source": "**/*.js",                         │
    │                        "headers": [{"key": "Cache-Control",         │
    │                                     "value": "max-age=7200"}]}]     │
    │       })                                                             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Reading the file itself is the host's job; this module only accepts the
parsed mapping. Rule lists may hold plain mappings. They are coerced into
rule objects in place when the config is built, and again where rules are
read, so a mapping appended during a request works too.

serve() uses the config object it is given as the request's mutable
context: a filesystem handler that changes it (for instance toggling
`etag`) affects the rest of that request. The object is not copied, so a
change is also seen by later requests using it; hosts that need isolation
between concurrent requests pass each one its own config.

=============================================================================
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union


def _require_str(value: Any, what: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{what} must be a non-empty string, got {value!r}")
    return value


# ─────────────────────────────────────────────────────────────────────────
# RULES
# ─────────────────────────────────────────────────────────────────────────

@dataclass
class RewriteRule:
    """Serve `destination` for requests matching `source`, silently."""

    source: str
    destination: str

    @classmethod
    def coerce(cls, value: Any) -> "RewriteRule":
        if isinstance(value, cls):
            return value
        return cls(source=value["source"], destination=value["destination"])


@dataclass
class RedirectRule:
    """
    Send the client to `destination` for requests matching `source`.

    status_code None means 301. raw=True sends the destination in the
    Location header exactly as written, without percent-encoding.
    """

    source: str
    destination: str
    status_code: Optional[int] = None
    raw: bool = False

    @classmethod
    def coerce(cls, value: Any) -> "RedirectRule":
        if isinstance(value, cls):
            return value
        status = value.get("statusCode", value.get("status_code", value.get("type")))
        return cls(
            source=value["source"],
            destination=value["destination"],
            status_code=status,
            raw=bool(value.get("raw", False)),
        )


@dataclass
class HeaderPatch:
    """Set `key` to `value`; a None value removes the header."""

    key: str
    value: Optional[str] = None

    @classmethod
    def coerce(cls, value: Any) -> "HeaderPatch":
        if isinstance(value, cls):
            return value
        return cls(key=value["key"], value=value.get("value"))


@dataclass
class HeaderRule:
    """
    Header patches for every served path matching the `source` glob.

    `headers` accepts a list of {"key", "value"} mappings or a plain
    {name: value} mapping.
    """

    source: str
    headers: List[HeaderPatch] = field(default_factory=list)

    def __post_init__(self):
        patches = self.headers
        if isinstance(patches, Mapping):
            patches = [HeaderPatch(key, value) for key, value in patches.items()]
        self.headers = [HeaderPatch.coerce(patch) for patch in patches]

    @classmethod
    def coerce(cls, value: Any) -> "HeaderRule":
        if isinstance(value, cls):
            return value
        return cls(source=value["source"], headers=value.get("headers", []))


def _coerce_rules(rule_type: Any, rules: Optional[list]) -> list:
    if not isinstance(rules, list):
        return [rule_type.coerce(rule) for rule in rules or []]
    rules[:] = [rule_type.coerce(rule) for rule in rules]
    return rules


# ─────────────────────────────────────────────────────────────────────────
# CONFIGURATION
# ─────────────────────────────────────────────────────────────────────────

# JSON document key → attribute name
_KEY_MAP = {
    "public": "public",
    "cleanUrls": "clean_urls",
    "rewrites": "rewrites",
    "redirects": "redirects",
    "headers": "headers",
    "directoryListing": "directory_listing",
    "unlisted": "unlisted",
    "trailingSlash": "trailing_slash",
    "renderSingle": "render_single",
    "symlinks": "symlinks",
    "etag": "etag",
}


@dataclass
class ServeConfig:
    """
    Configuration for the static file handler.

    All attributes are optional; an empty ServeConfig serves the working
    directory with clean URLs and directory listings enabled.
    """

    public: Optional[str] = None
    """
    Directory to serve. Relative paths resolve against the process
    working directory; None serves the working directory itself.
    """

    clean_urls: Union[bool, List[str]] = True
    """
    Serve "/about" from "about.html" and redirect "/about.html" to "/about".
    A list of globs limits this to matching paths.
    """

    rewrites: List[RewriteRule] = field(default_factory=list)
    """Ordered rewrite rules; the first match wins, then the list reapplies."""

    redirects: List[RedirectRule] = field(default_factory=list)
    """Ordered redirect rules; the first match wins."""

    headers: List[HeaderRule] = field(default_factory=list)
    """Ordered header rules; later rules override earlier ones."""

    directory_listing: Union[bool, List[str]] = True
    """
    Render listings for directories. A list of globs limits listings to
    matching paths.
    """

    unlisted: List[str] = field(default_factory=list)
    """
    Globs for entries hidden from listings, matched against entry names.
    ".DS_Store" and ".git" are always hidden.
    """

    trailing_slash: Optional[bool] = None
    """
    True adds a trailing slash to extensionless paths, False removes it,
    None leaves paths alone. Both booleans also collapse "//" runs.
    """

    render_single: bool = False
    """Serve the only file of a one-file directory instead of listing it."""

    symlinks: bool = False
    """Follow symbolic links. When False, links answer 404."""

    etag: bool = False
    """Send a strong ETag (SHA-1 of the content) with every file."""

    def __post_init__(self):
        # Coerced in place; the caller's lists stay live
        self.rewrites = _coerce_rules(RewriteRule, self.rewrites)
        self.redirects = _coerce_rules(RedirectRule, self.redirects)
        self.headers = _coerce_rules(HeaderRule, self.headers)
        if not isinstance(self.unlisted, list):
            self.unlisted = list(self.unlisted or [])

    @property
    def public_root(self) -> str:
        """Absolute path of the directory being served."""
        return os.path.abspath(os.path.join(os.getcwd(), self.public or ""))

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]] = None) -> "ServeConfig":
        """
        Build a config from a parsed JSON document.

        Accepts the camelCase keys of the JSON format and the snake_case
        attribute names.

        Raises:
            ValueError: Unknown key, or a value validate() rejects.
        """
        kwargs: Dict[str, Any] = {}
        attributes = set(_KEY_MAP.values())
        for key, value in (data or {}).items():
            name = _KEY_MAP.get(key, key)
            if name not in attributes:
                raise ValueError(f"Unknown configuration key: {key!r}")
            kwargs[name] = value

        try:
            config = cls(**kwargs)
        except (KeyError, TypeError, AttributeError) as e:
            raise ValueError(f"Invalid rule in configuration: {e}") from e

        config.validate()
        return config

    def validate(self) -> None:
        """
        Check types and values, failing on the first problem.

        Raises:
            ValueError: Describes the offending setting.
        """
        if self.public is not None and not isinstance(self.public, str):
            raise ValueError(f"public must be a string, got {self.public!r}")

        for name in ("clean_urls", "directory_listing"):
            value = getattr(self, name)
            if isinstance(value, bool):
                continue
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ValueError(f"{name} must be a boolean or a list of globs")

        if self.trailing_slash not in (None, True, False):
            raise ValueError(f"trailing_slash must be a boolean or None, got {self.trailing_slash!r}")

        for flag in ("render_single", "symlinks", "etag"):
            if not isinstance(getattr(self, flag), bool):
                raise ValueError(f"{flag} must be a boolean")

        if not all(isinstance(glob, str) for glob in self.unlisted):
            raise ValueError("unlisted must be a list of globs")

        for rule in self.rewrites:
            _require_str(rule.source, "rewrite source")
            _require_str(rule.destination, "rewrite destination")

        for rule in self.redirects:
            _require_str(rule.source, "redirect source")
            _require_str(rule.destination, "redirect destination")
            if rule.status_code is not None and (
                not isinstance(rule.status_code, int) or not 300 <= rule.status_code < 400
            ):
                raise ValueError(f"Redirect status must be a 3xx code, got {rule.status_code!r}")

        for rule in self.headers:
            _require_str(rule.source, "header source")
            for patch in rule.headers:
                _require_str(patch.key, "header key")

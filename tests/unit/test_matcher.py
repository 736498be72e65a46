"""
Unit tests for the path matcher.
"""

import pytest

from servehandler.routing.matcher import (
    fill_placeholders,
    matches,
    normalize,
    setting_applies,
    slash_glob,
    to_target,
)


class TestNormalization:
    """Tests for source and request path normalization."""

    def test_slash_glob_adds_leading_slash(self):
        """Sources without a leading slash get one."""
        assert slash_glob("docs/*.md") == "/docs/*.md"
        assert slash_glob("/docs/*.md") == "/docs/*.md"

    def test_slash_glob_keeps_negation_in_front(self):
        """A "!" prefix stays before the added slash."""
        assert slash_glob("!node_modules/**") == "!/node_modules/**"

    def test_slash_glob_extglob_is_not_negation(self):
        """A leading "!(" starts an extglob."""
        assert slash_glob("!(a).js") == "/!(a).js"

    def test_normalize(self):
        """Dot segments resolve and slash runs collapse."""
        assert normalize("//a/./b/../c/") == "/a/c"
        assert normalize("") == "/"
        assert normalize("/") == "/"


class TestGlobMatching:
    """Tests for glob sources."""

    def test_star_within_segment(self):
        assert matches("/docs/*.md", "/docs/readme.md")
        assert not matches("/docs/*.md", "/docs/guide/readme.md")

    def test_source_without_slash(self):
        assert matches("*.md", "/readme.md")

    def test_star_skips_dotfiles(self):
        """Wildcards do not match a leading dot."""
        assert not matches("/*", "/.env")
        assert matches("/.*", "/.env")

    def test_globstar(self):
        assert matches("/**/*.html", "/a/b/c.html")
        assert matches("/**/*.html", "/c.html")
        assert matches("/**", "/a/b")
        assert not matches("/**/*.html", "/.hidden/x.html")

    def test_question_mark(self):
        assert matches("/file?.txt", "/file1.txt")
        assert not matches("/file?.txt", "/file10.txt")

    def test_character_class(self):
        assert matches("/[abc].txt", "/a.txt")
        assert not matches("/[abc].txt", "/d.txt")
        assert matches("/[!abc].txt", "/d.txt")
        assert not matches("/[!abc].txt", "/a.txt")
        assert matches("/[a-c].txt", "/b.txt")

    def test_invalid_class_is_literal(self):
        """A reversed range cannot compile, so the bracket is plain text."""
        assert matches("[z-a]*", "/[z-a]x")
        assert not matches("[z-a]*", "/docs.txt")
        assert not matches("[z-a]*", "/docs.txt", extract_segments=True)

    def test_extglobs(self):
        assert matches("/+(a|b).js", "/aab.js")
        assert matches("/@(a|b).js", "/a.js")
        assert not matches("/@(a|b).js", "/ab.js")
        assert matches("/x?(a|b).js", "/x.js")
        assert matches("/x?(a|b).js", "/xa.js")
        assert matches("/x*(a|b).js", "/xabba.js")

    def test_negated_extglob(self):
        assert matches("/!(x).js", "/y.js")
        assert not matches("/!(x).js", "/x.js")

    def test_escaped_wildcard_is_literal(self):
        assert matches("/\\*.txt", "/*.txt")
        assert not matches("/\\*.txt", "/a.txt")

    def test_negation(self):
        assert matches("!/docs/**", "/src/a")
        assert not matches("!/docs/**", "/docs/a")

    def test_double_negation(self):
        assert matches("!!/docs/**", "/docs/a")

    def test_case_sensitive(self):
        assert not matches("/Docs/*", "/docs/a")

    def test_request_path_is_normalized(self):
        assert matches("/docs/*.md", "//docs/./guide/../readme.md")

    def test_negation_never_extracts(self):
        found = matches("!/docs/:page", "/src", extract_segments=True)
        assert found
        assert found.params == []


class TestTemplateMatching:
    """Tests for path templates with captures."""

    def test_named_param(self):
        found = matches("/blog/:slug", "/blog/hello", extract_segments=True)
        assert found.as_dict() == {"slug": "hello"}

    def test_case_insensitive(self):
        assert matches("/blog/:slug", "/BLOG/hello", extract_segments=True)

    def test_multiple_params(self):
        found = matches("/:year/:month/:slug", "/2024/05/post", extract_segments=True)
        assert found.as_dict() == {"year": "2024", "month": "05", "slug": "post"}

    def test_optional_param(self):
        found = matches("/docs/:page?", "/docs", extract_segments=True)
        assert found.as_dict() == {"page": ""}
        found = matches("/docs/:page?", "/docs/intro", extract_segments=True)
        assert found.as_dict() == {"page": "intro"}

    def test_one_or_more_param(self):
        found = matches("/files/:path+", "/files/a/b", extract_segments=True)
        assert found.as_dict() == {"path": "a/b"}
        # Falls back to the glob, which has no captures
        assert not matches("/files/:path+", "/files", extract_segments=True).params

    def test_zero_or_more_param(self):
        found = matches("/files/:path*", "/files", extract_segments=True)
        assert found.as_dict() == {"path": ""}

    def test_param_with_suffix(self):
        found = matches("/:name.html", "/page.html", extract_segments=True)
        assert found.as_dict() == {"name": "page"}

    def test_trailing_star_takes_rest(self):
        found = matches("/app/*", "/app/a/b", extract_segments=True)
        assert found.as_dict() == {"0": "a/b"}

    def test_globstar_capture(self):
        found = matches("/assets/**", "/assets/x/y.png", extract_segments=True)
        assert found.as_dict() == {"0": "x/y.png"}

    def test_unnamed_captures_are_numbered(self):
        found = matches("/*/x/*", "/a/x/b/c", extract_segments=True)
        assert found.as_dict() == {"0": "a", "1": "b/c"}

    def test_no_match(self):
        assert not matches("/blog/:slug", "/news/hello", extract_segments=True)


class TestSettingApplies:
    """Tests for boolean-or-list settings."""

    def test_booleans(self):
        assert setting_applies(True, "/a") is True
        assert setting_applies(False, "/a") is False

    def test_none_means_enabled(self):
        assert setting_applies(None, "/a") is True

    def test_list_of_globs(self):
        assert setting_applies(["/docs/**"], "/docs/a")
        assert not setting_applies(["/docs/**"], "/b")
        assert not setting_applies([], "/b")


class TestToTarget:
    """Tests for destination computation."""

    def test_substitutes_params(self):
        assert to_target("/blog/:slug", "/posts/:slug.html", "/blog/hi") == "/posts/hi.html"

    def test_miss_returns_none(self):
        assert to_target("/blog/:slug", "/posts/:slug", "/news/hi") is None

    def test_adds_leading_slash(self):
        assert to_target("/a", "b", "/a") == "/b"

    def test_scheme_destination_keeps_port(self):
        target = to_target("/old/:id", "https://example.com:8443/new/:id", "/old/5")
        assert target == "https://example.com:8443/new/5"

    def test_protocol_relative_destination_kept(self):
        target = to_target("/cdn/:file", "//cdn.example.com/:file", "/cdn/a.js")
        assert target == "//cdn.example.com/a.js"

    def test_capture_cannot_create_protocol_relative_path(self):
        assert to_target("/go/:to?", "/:to/x", "/go") == "/x"

    def test_unknown_placeholder_left_alone(self):
        assert fill_placeholders("/x/:missing", {}) == "/x/:missing"

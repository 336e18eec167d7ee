from unsafe_count import (
    COLOR,
    PLAIN,
    ParseError,
    ParseFailure,
    Position,
    Span,
    render_failure,
    select_style,
)

SOURCE = "fn main() {\n    let x = ;   \n}\n"


def failure(message, start, end, source=SOURCE, path="src/lib.rs"):
    span = Span(Position(*start), Position(*end))
    return ParseFailure(ParseError(message, span), path, source)


def test_zero_width_span_uses_fallback():
    out = render_failure(failure("expected `;`", (2, 12), (2, 12)))
    assert out == "Unable to parse file: expected `;`"


def test_missing_line_uses_fallback():
    out = render_failure(failure("unexpected token `}`", (9, 0), (9, 1)))
    assert out == "Unable to parse file: unexpected token `}`"


def test_line_zero_uses_fallback():
    out = render_failure(failure("unexpected input", (0, 0), (0, 3)))
    assert out == "Unable to parse file: unexpected input"


def test_excerpt_layout():
    out = render_failure(failure("expected expression", (2, 12), (2, 13)))
    assert out == (
        "\n"
        "error: unable to parse file\n"
        " --> lib.rs:2:12\n"
        "  |\n"
        "2 |     let x = ;\n"
        "  |             ^ expected expression\n"
    )


def test_multiline_span_clamped_to_start_line():
    out = render_failure(failure("unexpected token `let`", (2, 4), (3, 1)))
    underline = out.splitlines()[-1]
    # "    let x = ;   " is 16 characters long
    assert underline == "  |     " + "^" * 12 + " unexpected token `let`"


def test_gutter_width_follows_line_number():
    source = "\n" * 11 + "fn broken( {\n"
    out = render_failure(failure("unexpected token `{`", (12, 11), (12, 12), source=source))
    lines = out.splitlines()
    assert lines[2] == "  --> lib.rs:12:11"
    assert lines[3] == "   |"
    assert lines[4] == "12 | fn broken( {"
    assert lines[5] == "   |            ^ unexpected token `{`"


def test_crlf_line_endings_are_not_rendered():
    source = "fn main() {\r\n    let = 1;\r\n}\r\n"
    out = render_failure(failure("unexpected token `=`", (2, 8), (2, 9), source=source))
    assert "2 |     let = 1;\n" in out
    assert "\r" not in out


def test_default_filename_without_path():
    out = render_failure(failure("expected expression", (2, 12), (2, 13), path=""))
    assert " --> main.rs:2:12" in out


def test_render_method_defaults_to_plain():
    f = failure("expected expression", (2, 12), (2, 13))
    assert f.render() == render_failure(f, PLAIN)


def test_color_style_emits_escape_codes():
    f = failure("expected expression", (2, 12), (2, 13))
    out = render_failure(f, COLOR)
    assert "\x1b[" in out
    assert "expected expression" in out
    assert "\x1b[" not in render_failure(f, PLAIN)


def test_color_fallback_is_plain_text():
    out = render_failure(failure("expected `;`", (1, 3), (1, 3)), COLOR)
    assert out == "Unable to parse file: expected `;`"


class _Stream:
    def __init__(self, tty):
        self.tty = tty

    def isatty(self):
        return self.tty


def test_select_style():
    assert select_style("always") is COLOR
    assert select_style("never") is PLAIN
    assert select_style("auto", _Stream(True)) is COLOR
    assert select_style("auto", _Stream(False)) is PLAIN

import io

from garnet_lang.internals import errors as er
from garnet_lang.internals.report import Reporter, Span


def _reporter(tmp_path, monkeypatch, source):
    monkeypatch.chdir(tmp_path)
    return Reporter(str(tmp_path / "bad.rb"), source)


def test_plain_snippet_with_caret(tmp_path, monkeypatch):
    r = _reporter(tmp_path, monkeypatch, "x = 1\ny = = 2\n")
    r.error("CE1001", "syntax error: unexpected '='", Span.at(2, 5))

    assert r.format().splitlines() == [
        "./bad.rb:2:5: error [CE1001]: syntax error: unexpected '='.",
        "  | y = = 2",
        "  `     ^",
    ]


def test_spanless_diagnostic_is_one_line(tmp_path, monkeypatch):
    r = _reporter(tmp_path, monkeypatch, "puts 1")
    er.emit(r, er.ERR.CW0001, None)

    assert r.has_warnings and not r.has_errors
    assert r.count("warning") == 1
    assert r.format().startswith("./bad.rb: warning [CW0001]: ")
    assert "\n" not in r.format()


def test_print_to_non_tty_is_unstyled(tmp_path, monkeypatch):
    r = _reporter(tmp_path, monkeypatch, "x\n")
    r.error("CE2001", "boom", Span.at(1))
    out = io.StringIO()
    r.print(out)

    assert "\x1b[" not in out.getvalue()
    assert "╭" not in out.getvalue()


def test_empty_reporter_prints_nothing():
    out = io.StringIO()
    Reporter("app.rb").print(out)
    assert out.getvalue() == ""

import threading

import pytest

from garnet_lang.backend.interning import PersistentTable, id_order
from garnet_lang.compiler.driver import CompilationDriver
from garnet_lang.compiler.payload import CachePayload, decode, encode
from garnet_lang.internals.errors import CachePayloadError, CodegenError, UnitSyntaxError


BROKEN = (
    "class Greeter\n"
    "  def greet(name)\n"
    "    puts name\n"
    "  end\n"
    "end\n"
    "g = Greeter.new\n"
    "g.greet(= 1)\n"
)


def test_syntax_error_reports_file_and_line(driver, table):
    before = len(table)
    with pytest.raises(UnitSyntaxError) as exc:
        driver.compile(BROKEN, "greeter.rb")
    assert exc.value.file == "greeter.rb"
    assert exc.value.line == 7
    assert "on line 7" in str(exc.value)
    assert len(table) == before


def test_invalid_escape_is_a_syntax_error(driver, table):
    with pytest.raises(UnitSyntaxError) as exc:
        driver.compile('puts 1\nx = "\\u{110000}"\n', "u.rb")
    assert exc.value.file == "u.rb"
    assert exc.value.line == 2
    assert len(table) == 0


def test_codegen_error_names_the_file(driver, table):
    with pytest.raises(CodegenError) as exc:
        driver.compile("foo\nbreak\n", "loop.rb")
    assert exc.value.file == "loop.rb"
    assert len(table) == 0


def test_compile_wraps_and_merges(driver, table):
    result = driver.compile("foo.bar\n", "app.rb")
    assert result.code.startswith("(function(VM) { var $nilcls = VM.NC")
    assert "self.$a().$b();" in result.code
    assert result.code.endswith("\n})")
    assert result.interned == {"foo": "a", "bar": "b"}
    assert result.manifest == CachePayload({"foo": "a", "bar": "b"}, "c")
    assert table.lookup("bar") == "b"


def test_core_unit_uses_core_wrapper(driver):
    result = driver.compile("x = 1\n", "core.rb", core=True)
    assert result.code.startswith("function(VM, top, FILE) {")
    assert "var code = function(self, FILE) {" in result.code


def test_reset_for_unit_keeps_table(driver, table):
    driver.compile("foo\n", "a.rb")
    unit = driver.reset_for_unit("b.rb")
    assert unit.file_id == "b.rb"
    assert unit.unique == 0 and unit.symbols == {}
    assert table.lookup("foo") == "a"
    assert unit.intern("foo") == "a"


def test_compilation_is_deterministic():
    src = "class A\n  def run(x)\n    x.go(:now) do |y|\n      y\n    end\n  end\nend\n"
    first = CompilationDriver().compile(src, "a.rb")
    second = CompilationDriver().compile(src, "a.rb")
    assert first.code == second.code
    assert first.manifest == second.manifest


def test_incremental_build_reproduces_output():
    lib = "def helper\n  @cache\nend\n"
    app = "helper.size\nputs 1\n"

    full = CompilationDriver()
    full.compile(lib, "lib.rb")
    app_before = full.compile(app, "app.rb")
    text = encode(full.build_manifest())

    # Next build: only app.rb changed, lib.rb output comes from the cache
    rebuilt = CompilationDriver()
    rebuilt.load_manifest(decode(text))
    app_after = rebuilt.compile(app, "app.rb")

    assert app_after.code == app_before.code
    assert rebuilt.build_manifest() == full.build_manifest()


def test_unrelated_unit_after_reload_keeps_ids():
    first = CompilationDriver()
    a = first.compile("class Counter\n  def bump\n    @count = @count + 1\n  end\nend\n", "a.rb")
    payload = decode(encode(first.build_manifest()))

    second = CompilationDriver()
    second.load_manifest(payload)
    b = second.compile("log = Logger.new\nlog.info(:started)\nlog.flush\n", "b.rb")

    methods = second.build_manifest().methods
    assert a.interned.items() <= methods.items()
    new_names = set(b.interned) - set(a.interned)
    assert new_names == {"new", "info", "flush"}
    newest_old = max((id_order(i) for i in a.interned.values()))
    assert all(id_order(methods[n]) > newest_old for n in new_names)


def test_load_manifest_rejects_bad_payload(driver, table):
    driver.make_intern("foo")
    with pytest.raises(CachePayloadError):
        driver.load_manifest(CachePayload({"a": "zz"}, "b"))
    assert table.lookup("foo") == "a"


def test_make_intern(driver, table):
    assert driver.make_intern("to_s") == "a"
    assert driver.make_intern("to_s") == "a"
    assert driver.make_intern("inspect") == "b"
    assert table.lookup("inspect") == "b"
    result = driver.compile("x.to_s\n", "x.rb")
    assert "self.$c().$a();" in result.code


def test_drivers_share_a_table_across_threads(table):
    sources = {
        f"u{n}.rb": "\n".join(f"obj.m{(n + k) % 12}(@v{k % 5})" for k in range(12)) + "\n"
        for n in range(6)
    }
    results = {}
    errors = []

    def build(file_id, src):
        try:
            results[file_id] = CompilationDriver(table).compile(src, file_id)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=build, args=item) for item in sources.items()]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    snapshot = table.export_snapshot()
    assert len(set(snapshot.methods.values())) == len(snapshot.methods)
    for result in results.values():
        for name, ident in result.interned.items():
            assert snapshot.methods[name] == ident


def test_failed_unit_does_not_disturb_later_units(table):
    driver = CompilationDriver(table)
    with pytest.raises(UnitSyntaxError):
        driver.compile("a.b(\n", "bad.rb")
    result = driver.compile("a.c\n", "good.rb")
    assert set(result.interned) == {"a", "c"}
    assert len(table) == 2


def test_failed_unit_releases_its_reservations(table):
    driver = CompilationDriver(table)
    with pytest.raises(CodegenError):
        driver.compile("foo.bar\nbreak\n", "loop.rb")
    assert table.pending == {}
    driver.compile("x.baz\n", "ok.rb")
    assert table.pending == {}


def test_new_driver_owns_fresh_table():
    assert len(CompilationDriver().table) == 0
    shared = PersistentTable()
    assert CompilationDriver(shared).table is shared

from garnet_lang.runtime.helpers import (
    RUNTIME_HELPERS,
    HelperEntry,
    RuntimeHelper,
    registry_signature,
)
from garnet_lang.runtime.js import js_number, js_string
from garnet_lang.runtime.wrapper import helper_prologue, wrap_core, wrap_unit


def test_wrap_unit_single_helper():
    code = wrap_unit("1+1", (HelperEntry("$x", "y"),))
    assert code == "(function(VM) { var $x = VM.y;\n1+1;\n})"


def test_wrap_unit_without_helpers():
    assert wrap_unit("1+1", ()) == "(function(VM) {\n1+1;\n})"


def test_wrap_does_not_double_trailing_semicolon():
    helpers = (HelperEntry("$x", "y"),)
    assert wrap_unit("1+1;", helpers) == wrap_unit("1+1", helpers)
    assert wrap_unit("f();\n", ()) == "(function(VM) {\nf();\n})"
    assert ";;" not in wrap_core("function(self, FILE) {};", helpers)


def test_wrap_core_calls_generated_function():
    code = wrap_core("function(self, FILE) {}", (HelperEntry("$x", "y"),))
    assert code.startswith("function(VM, top, FILE) { var $x = VM.y;\n")
    assert "var code = function(self, FILE) {};" in code
    assert code.endswith("return code(top, FILE);}")


def test_prologue_follows_registry_order():
    prologue = helper_prologue()
    positions = [prologue.index(f"{h.alias} = VM.{h.member}") for h in RUNTIME_HELPERS]
    assert positions == sorted(positions)
    assert prologue.startswith("var $nilcls = VM.NC, $super = VM.S")
    assert helper_prologue(()) == ""


def test_registry_aliases_are_unique():
    aliases = [h.alias for h in RUNTIME_HELPERS]
    assert len(aliases) == len(set(aliases))
    assert RuntimeHelper.DEFN.alias == "$defn"


def test_registry_signature_changes_with_registry():
    base = registry_signature()
    assert base == registry_signature(RUNTIME_HELPERS)
    assert registry_signature(RUNTIME_HELPERS[:-1]) != base


def test_js_literals():
    assert js_string('a"b') == '"a\\"b"'
    assert js_string("</script>") == '"<\\/script>"'
    assert js_string("é") == '"\\u00e9"'
    assert js_number(3) == "3"
    assert js_number(2.0) == "2"
    assert js_number(1.5) == "1.5"

# tests/test_symbol_resolution.py
"""
Tests for name binding: what a call inside a handler lambda resolves to,
and which decorators the resolved function carries.
"""

import ast
import textwrap
from unittest.mock import MagicMock

from routelint.compilation import Compilation, Project, SourceDocument
from routelint.delegate_endpoints import resolve_target_method
from routelint.symbols import CandidateReason, MethodSymbol, SymbolInfo, TypeSymbol


def _src(text):
    return textwrap.dedent(text)


def _info(compilation, callee, document="test0.py"):
    model = compilation.get_semantic_model(document)
    return model, model.get_symbol_info(_find(model.tree, callee))


def _find(tree, callee):
    for node in ast.walk(tree):
        if isinstance(node, ast.Call) and ast.unparse(node.func) == callee:
            return node
    raise AssertionError(f"no call to {callee}")


class TestSimpleBinding:

    def test_module_function(self, compile_sources):
        compilation = compile_sources(_src("""
            def hello():
                return "hi"

            handler = lambda: hello()
        """))
        _, info = _info(compilation, "hello")
        assert isinstance(info.symbol, MethodSymbol)
        assert info.symbol.name == "hello"
        assert info.candidate_symbols == ()

    def test_static_method_on_class(self, compile_sources):
        compilation = compile_sources(_src("""
            class Foo:
                @staticmethod
                def hello():
                    return "hi"

            handler = lambda: Foo.hello()
        """))
        _, info = _info(compilation, "Foo.hello")
        assert info.symbol.name == "hello"
        assert info.symbol.containing_type.name == "Foo"
        assert info.symbol.to_display_string() == "test0.Foo.hello"

    def test_unknown_name_binds_nothing(self, compile_sources):
        compilation = compile_sources("handler = lambda: missing()\n")
        _, info = _info(compilation, "missing")
        assert info.symbol is None
        assert info.candidate_symbols == ()
        assert info.candidate_reason is CandidateReason.NONE

    def test_builtin_binds_nothing(self, compile_sources):
        compilation = compile_sources("handler = lambda: print('hi')\n")
        _, info = _info(compilation, "print")
        assert info.symbol is None

    def test_calling_a_class_is_not_a_method(self, compile_sources):
        compilation = compile_sources(_src("""
            class Foo:
                pass

            handler = lambda: Foo()
        """))
        _, info = _info(compilation, "Foo")
        assert info.symbol is None
        assert info.candidate_reason is CandidateReason.NOT_A_METHOD

    def test_lambda_parameter_binds_nothing(self, compile_sources):
        compilation = compile_sources(_src("""
            def hello():
                pass

            handler = lambda hello: hello()
        """))
        _, info = _info(compilation, "hello")
        assert info.symbol is None

    def test_non_call_expression(self, compile_sources):
        compilation = compile_sources("x = 1\n")
        model = compilation.get_semantic_model("test0.py")
        assert model.get_symbol_info(ast.Name(id="x", ctx=ast.Load())).symbol is None


class TestAmbiguousBinding:

    def test_redefinition_yields_candidates_in_source_order(self, compile_sources):
        compilation = compile_sources(_src("""
            def hello():
                return 1

            def hello():
                return 2

            handler = lambda: hello()
        """))
        _, info = _info(compilation, "hello")
        assert info.symbol is None
        assert info.candidate_reason is CandidateReason.AMBIGUOUS
        assert len(info.candidate_symbols) == 2
        first, second = info.candidate_symbols
        assert first.location.line < second.location.line

    def test_conditional_definitions_are_ambiguous(self, compile_sources):
        compilation = compile_sources(_src("""
            import sys

            if sys.platform == "win32":
                def hello():
                    return "win"
            else:
                def hello():
                    return "posix"

            handler = lambda: hello()
        """))
        _, info = _info(compilation, "hello")
        assert info.candidate_reason is CandidateReason.AMBIGUOUS
        assert [m.location.line for m in info.candidate_symbols] == [5, 8]

    def test_function_rebound_to_value_keeps_function_candidate(self, compile_sources):
        compilation = compile_sources(_src("""
            def hello():
                return 1

            hello = None
            handler = lambda: hello()
        """))
        _, info = _info(compilation, "hello")
        assert info.symbol is None
        assert len(info.candidate_symbols) == 1


class TestScopes:

    def test_class_body_is_not_visible_to_nested_lambda(self, compile_sources):
        compilation = compile_sources(_src("""
            def hello():
                return "module"

            class Api:
                def hello(self):
                    return "method"

                handler = lambda: hello()
        """))
        _, info = _info(compilation, "hello")
        assert info.symbol.containing_type is None

    def test_enclosing_function_scope(self, compile_sources):
        compilation = compile_sources(_src("""
            def register(app):
                def hello():
                    return "inner"
                app.map_get("/", lambda: hello())
        """))
        _, info = _info(compilation, "hello")
        assert info.symbol.name == "hello"
        assert info.symbol.syntax.body[0].value.value == "inner"

    def test_global_declaration_binds_module_scope(self, compile_sources):
        compilation = compile_sources(_src("""
            def setup():
                global hello
                def hello():
                    pass

            handler = lambda: hello()
        """))
        _, info = _info(compilation, "hello")
        assert info.symbol.name == "hello"


class TestMethodsAndInstances:

    def test_self_method(self, compile_sources):
        compilation = compile_sources(_src("""
            class Api:
                def hello(self):
                    return "hi"

                def register(self, app):
                    app.map_get("/", lambda: self.hello())
        """))
        _, info = _info(compilation, "self.hello")
        assert info.symbol.name == "hello"
        assert info.symbol.containing_type.name == "Api"

    def test_classmethod_cls(self, compile_sources):
        compilation = compile_sources(_src("""
            class Api:
                @classmethod
                def hello(cls):
                    return "hi"

                @classmethod
                def register(cls, app):
                    app.map_get("/", lambda: cls.hello())
        """))
        _, info = _info(compilation, "cls.hello")
        assert info.symbol.name == "hello"

    def test_instance_of_class(self, compile_sources):
        compilation = compile_sources(_src("""
            class Api:
                def hello(self):
                    return "hi"

            handler = lambda: Api().hello()
        """))
        _, info = _info(compilation, "Api().hello")
        assert info.symbol.name == "hello"

    def test_inherited_method(self, compile_sources):
        compilation = compile_sources(_src("""
            class Base:
                def hello(self):
                    return "base"

            class Derived(Base):
                pass

            handler = lambda: Derived.hello(None)
        """))
        _, info = _info(compilation, "Derived.hello")
        assert info.symbol.containing_type.name == "Base"

    def test_override_wins_over_base(self, compile_sources):
        compilation = compile_sources(_src("""
            class Base:
                def hello(self):
                    return "base"

            class Derived(Base):
                def hello(self):
                    return "derived"

            handler = lambda: Derived.hello(None)
        """))
        _, info = _info(compilation, "Derived.hello")
        assert info.symbol.containing_type.name == "Derived"

    def test_missing_member(self, compile_sources):
        compilation = compile_sources(_src("""
            class Foo:
                pass

            handler = lambda: Foo.hello()
        """))
        _, info = _info(compilation, "Foo.hello")
        assert info.symbol is None


class TestImports:

    def test_from_import_across_documents(self, compile_sources):
        compilation = compile_sources(
            "def hello():\n    return 'hi'\n",
            "from test0 import hello\nhandler = lambda: hello()\n",
        )
        _, info = _info(compilation, "hello", document="test1.py")
        assert info.symbol.containing_namespace.qualified_name == "test0"

    def test_aliased_import(self, compile_sources):
        compilation = compile_sources(
            "def hello():\n    return 'hi'\n",
            "from test0 import hello as greet\nhandler = lambda: greet()\n",
        )
        _, info = _info(compilation, "greet", document="test1.py")
        assert info.symbol.name == "hello"

    def test_module_import_attribute(self, compile_sources):
        compilation = compile_sources(
            "def hello():\n    return 'hi'\n",
            "import test0\nhandler = lambda: test0.hello()\n",
        )
        _, info = _info(compilation, "test0.hello", document="test1.py")
        assert info.symbol.name == "hello"

    def test_star_import(self, compile_sources):
        compilation = compile_sources(
            "def hello():\n    return 'hi'\n",
            "from test0 import *\nhandler = lambda: hello()\n",
        )
        _, info = _info(compilation, "hello", document="test1.py")
        assert info.symbol.name == "hello"

    def test_relative_import_inside_package(self, references):
        project = Project(
            name="pkg",
            documents=(
                SourceDocument("pkg/__init__.py", "", "pkg", is_package=True),
                SourceDocument("pkg/handlers.py", "def hello():\n    pass\n", "pkg.handlers"),
                SourceDocument(
                    "pkg/app.py",
                    "from .handlers import hello\nhandler = lambda: hello()\n",
                    "pkg.app",
                ),
            ),
            metadata_references=tuple(references),
        )
        compilation = Compilation.create(project)
        model = compilation.get_semantic_model("pkg/app.py")
        info = model.get_symbol_info(_find(model.tree, "hello"))
        assert info.symbol.containing_namespace.qualified_name == "pkg.handlers"

    def test_import_cycle_binds_nothing(self, compile_sources):
        compilation = compile_sources(
            "from test1 import hello\n",
            "from test0 import hello\nhandler = lambda: hello()\n",
        )
        _, info = _info(compilation, "hello", document="test1.py")
        assert info.symbol is None
        assert info.candidate_symbols == ()

    def test_star_import_cycle_binds_nothing(self, compile_sources):
        compilation = compile_sources(
            "from test1 import *\nhandler = lambda: missing()\n",
            "from test0 import *\n",
        )
        _, info = _info(compilation, "missing")
        assert info.symbol is None
        assert info.candidate_symbols == ()

    def test_star_import_cycle_still_finds_definitions(self, compile_sources):
        compilation = compile_sources(
            "from test1 import *\nhandler = lambda: hello()\n",
            "from test0 import *\n\ndef hello():\n    return 'hi'\n",
        )
        _, info = _info(compilation, "hello")
        assert info.symbol.containing_namespace.qualified_name == "test1"

    def test_star_import_of_itself(self, compile_sources):
        compilation = compile_sources("from test0 import *\nhandler = lambda: missing()\n")
        _, info = _info(compilation, "missing")
        assert info.symbol is None

    def test_package_star_import_of_itself(self, references):
        project = Project(
            name="pkg",
            documents=(
                SourceDocument(
                    "pkg/__init__.py",
                    "from . import *\nhandler = lambda: missing()\n",
                    "pkg",
                    is_package=True,
                ),
            ),
            metadata_references=tuple(references),
        )
        compilation = Compilation.create(project)
        model = compilation.get_semantic_model("pkg/__init__.py")
        assert model.get_symbol_info(_find(model.tree, "missing")).symbol is None

    def test_duplicate_module_is_still_bound(self):
        project = Project(
            name="dup",
            documents=(
                SourceDocument("a/app.py", "def hello():\n    pass\n", "app"),
                SourceDocument(
                    "b/app.py",
                    "class Foo:\n    @staticmethod\n    def hello():\n        pass\n\n"
                    "handler = lambda: Foo.hello()\n",
                    "app",
                ),
            ),
        )
        compilation = Compilation.create(project)
        assert len(compilation.source_modules) == 2
        assert compilation.get_module("app").file == "a/app.py"
        model = compilation.get_semantic_model("b/app.py")
        info = model.get_symbol_info(_find(model.tree, "Foo.hello"))
        assert info.symbol.name == "hello"
        assert info.symbol.containing_type.name == "Foo"

    def test_module_outside_compilation(self, compile_sources):
        compilation = compile_sources("from flask import jsonify\nhandler = lambda: jsonify()\n")
        _, info = _info(compilation, "jsonify")
        assert info.symbol is None

    def test_reference_function(self, compile_sources):
        compilation = compile_sources(
            "from routekit.authorization import require_role\nhandler = lambda: require_role('admin')\n",
        )
        _, info = _info(compilation, "require_role")
        assert info.symbol.containing_namespace.qualified_name == "routekit.authorization"


class TestDecoratorBinding:

    def test_reference_class_decorator(self, compile_sources):
        compilation = compile_sources(_src("""
            from routekit.authorization import Authorize

            @Authorize()
            def hello():
                pass

            handler = lambda: hello()
        """))
        _, info = _info(compilation, "hello")
        (attribute,) = info.symbol.get_attributes()
        assert isinstance(attribute.attribute_class, TypeSymbol)
        assert attribute.attribute_class.name == "Authorize"
        assert attribute.attribute_class.containing_namespace.to_display_string() == "routekit.authorization"

    def test_dotted_module_decorator(self, compile_sources):
        compilation = compile_sources(_src("""
            import routekit.authorization

            @routekit.authorization.AllowAnonymous()
            def hello():
                pass

            handler = lambda: hello()
        """))
        _, info = _info(compilation, "hello")
        (attribute,) = info.symbol.get_attributes()
        assert attribute.attribute_class.name == "AllowAnonymous"

    def test_decorators_in_declaration_order(self, compile_sources):
        compilation = compile_sources(_src("""
            from routekit.authorization import Authorize
            from routekit.routing import EndpointName, Tags

            class Foo:
                @staticmethod
                @Tags("a")
                @Authorize()
                @EndpointName("hello")
                def hello():
                    pass

            handler = lambda: Foo.hello()
        """))
        _, info = _info(compilation, "Foo.hello")
        names = [
            a.attribute_class.name if a.attribute_class else None
            for a in info.symbol.get_attributes()
        ]
        # builtins are not modelled
        assert names == [None, "Tags", "Authorize", "EndpointName"]

    def test_unresolved_decorator_has_no_class(self, compile_sources):
        compilation = compile_sources(_src("""
            from somewhere_else import trace

            @trace
            def hello():
                pass

            handler = lambda: hello()
        """))
        _, info = _info(compilation, "hello")
        (attribute,) = info.symbol.get_attributes()
        assert attribute.attribute_class is None

    def test_reference_shadowed_by_source_module(self, references):
        project = Project(
            name="shadow",
            documents=(
                SourceDocument("routekit/authorization.py", "class Authorize:\n    pass\n", "routekit.authorization"),
            ),
            metadata_references=tuple(references),
        )
        compilation = Compilation.create(project)
        module = compilation.get_module("routekit.authorization")
        assert module in compilation.source_modules


class TestResolveTargetMethod:
    """resolve_target_method against a fake semantic model."""

    def _model(self, info):
        model = MagicMock()
        model.get_symbol_info.return_value = info
        return model

    def test_bound_symbol(self):
        method = MethodSymbol("hello", None)
        call = ast.parse("hello()", mode="eval").body
        model = self._model(SymbolInfo(symbol=method))
        assert resolve_target_method(call, model) is method
        model.get_symbol_info.assert_called_once_with(call)

    def test_first_candidate(self):
        first, second = MethodSymbol("hello", None), MethodSymbol("hello", None)
        info = SymbolInfo(candidate_symbols=(first, second), candidate_reason=CandidateReason.AMBIGUOUS)
        assert resolve_target_method(ast.Call(), self._model(info)) is first

    def test_bound_symbol_wins_over_candidates(self):
        bound, other = MethodSymbol("hello", None), MethodSymbol("other", None)
        info = SymbolInfo(symbol=bound, candidate_symbols=(other,))
        assert resolve_target_method(ast.Call(), self._model(info)) is bound

    def test_nothing(self):
        assert resolve_target_method(ast.Call(), self._model(SymbolInfo.none())) is None

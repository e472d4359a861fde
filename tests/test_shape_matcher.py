# tests/test_shape_matcher.py
"""
Tests for lambda lowering and the supported lambda body shapes.
"""

import ast
import textwrap

from routelint.delegate_endpoints import match_lambda_shape
from routelint.operations import (
    BlockOperation,
    ExpressionStatementOperation,
    InvocationOperation,
    LambdaOperation,
    ReturnOperation,
    lower_body,
    lower_lambda,
)


def _lambda(text):
    return ast.parse(text, mode="eval").body


def _block_lambda(body_source):
    """A lambda whose body is an explicit statement block."""
    func = ast.parse("def handler():\n" + textwrap.indent(textwrap.dedent(body_source), "    ")).body[0]
    node = _lambda("lambda: None")
    return LambdaOperation(syntax=node, children=(lower_body(node, func.body),))


class TestLambdaLowering:

    def test_expression_body_has_implicit_block_and_return(self):
        op = lower_lambda(_lambda("lambda: hello()"))
        assert len(op.children) == 1
        block = op.children[0]
        assert isinstance(block, BlockOperation)
        assert block.is_implicit
        ret = block.children[0]
        assert isinstance(ret, ReturnOperation)
        assert ret.is_implicit
        assert isinstance(ret.returned_value, InvocationOperation)

    def test_block_syntax_is_the_lambda_body(self):
        node = _lambda("lambda: hello()")
        op = lower_lambda(node)
        assert op.children[0].syntax is node.body

    def test_invocation_children_are_arguments(self):
        op = lower_lambda(_lambda("lambda: hello(1, x=2)"))
        invocation = op.children[0].children[0].returned_value
        assert len(invocation.children) == 2

    def test_lower_body_keeps_statement_order(self):
        func = ast.parse("def f():\n    hello()\n    return 1\n").body[0]
        block = lower_body(func, func.body)
        assert not block.is_implicit
        assert isinstance(block.children[0], ExpressionStatementOperation)
        assert isinstance(block.children[1], ReturnOperation)

    def test_location_is_one_based(self):
        node = ast.parse("x = lambda: hello()").body[0].value
        op = lower_lambda(node, "app.py")
        assert op.location.file == "app.py"
        assert op.location.line == 1
        assert op.location.column == 5


class TestExpressionBodiedShape:

    def test_call_body_matches(self):
        node = _lambda("lambda: hello()")
        assert match_lambda_shape(lower_lambda(node)) is node.body

    def test_method_call_body_matches(self):
        node = _lambda("lambda: Foo.hello(1)")
        assert match_lambda_shape(lower_lambda(node)) is node.body

    def test_lambda_parameters_do_not_matter(self):
        node = _lambda("lambda request, *args: hello(request)")
        assert match_lambda_shape(lower_lambda(node)) is node.body

    def test_chained_call_targets_outer_call(self):
        node = _lambda("lambda: hello().strip()")
        target = match_lambda_shape(lower_lambda(node))
        assert ast.unparse(target.func) == "hello().strip"

    def test_constant_body_does_not_match(self):
        assert match_lambda_shape(lower_lambda(_lambda("lambda: 42"))) is None

    def test_tuple_of_calls_does_not_match(self):
        assert match_lambda_shape(lower_lambda(_lambda("lambda: (hello(), bye())"))) is None

    def test_boolean_expression_does_not_match(self):
        assert match_lambda_shape(lower_lambda(_lambda("lambda: hello() or bye()"))) is None

    def test_lambda_inside_async_function_matches(self):
        node = ast.parse("async def f():\n    g = lambda: await_it()\n").body[0].body[0].value
        assert match_lambda_shape(lower_lambda(node)) is node.body

    def test_empty_lambda_operation_does_not_match(self):
        node = _lambda("lambda: None")
        assert match_lambda_shape(LambdaOperation(syntax=node)) is None


class TestSingleReturnShape:

    def test_return_of_call_matches(self):
        op = _block_lambda("return hello()")
        target = match_lambda_shape(op)
        assert isinstance(target, ast.Call)
        assert ast.unparse(target) == "hello()"

    def test_both_shapes_pick_the_same_call(self):
        expression = match_lambda_shape(lower_lambda(_lambda("lambda: Foo.hello()")))
        block = match_lambda_shape(_block_lambda("return Foo.hello()"))
        assert ast.dump(expression) == ast.dump(block)

    def test_two_statements_do_not_match(self):
        op = _block_lambda("""
            hello()
            return "foo"
        """)
        assert match_lambda_shape(op) is None

    def test_return_after_assignment_does_not_match(self):
        op = _block_lambda("""
            x = 1
            return hello(x)
        """)
        assert match_lambda_shape(op) is None

    def test_call_statement_without_return_does_not_match(self):
        assert match_lambda_shape(_block_lambda("hello()")) is None

    def test_return_of_constant_does_not_match(self):
        assert match_lambda_shape(_block_lambda("return 'hi'")) is None

    def test_bare_return_does_not_match(self):
        assert match_lambda_shape(_block_lambda("return")) is None

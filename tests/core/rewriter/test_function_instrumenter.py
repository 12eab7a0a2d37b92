"""
Tests for the shape of the generated code.

Behaviour is covered by executing rewritten code in
``tests/functionality/test_exit_logging.py``; these tests pin the layout the
rewriter produces so regressions show up as readable diffs.
"""

import textwrap

import libcst as cst
import pytest

from fnlog.config import RuntimeConfig
from fnlog.core.errors import UnsupportedSyntaxError
from fnlog.core.rewriter import FunctionInstrumenter, FunctionLogRewriter
from fnlog.core.tracer import TraceEventType, TraceLogger

EMIT = (
  '_fnlog_sink.emit("DEBUG", "{name}", _fnlog_record(fn_name="{name}", fn_args=_fnlog_args, fn_return=repr({value})))'
)


def _rewrite(code: str, **config) -> str:
  module = cst.parse_module(textwrap.dedent(code).lstrip("\n"))
  return module.visit(FunctionLogRewriter(RuntimeConfig(**config))).code


def test_full_layout():
  out = _rewrite(
    '''
    @log_function
    def add(a, b):
        """Adds."""
        return a + b
    '''
  )

  emit = EMIT.format(name="add", value="_fnlog_res")
  expected = textwrap.dedent(
    f'''
    def add(a, b):
        """Adds."""
        _fnlog_context.insert("fn_name", "add")
        _fnlog_args = []
        _fnlog_args.append(f"a: {{a!r}}")
        _fnlog_args.append(f"b: {{b!r}}")
        try:
            _fnlog_res = a + b
            {emit}
            _fnlog_context.remove("fn_name")
            return _fnlog_res
        except BaseException as _fnlog_res:
            {emit}
            _fnlog_context.remove("fn_name")
            raise
    '''
  ).lstrip("\n")
  assert out == expected


def test_synthetic_tail_when_block_falls_through():
  out = _rewrite(
    """
    @log_function
    def ping():
        print("ping")
    """
  )

  assert out.count('_fnlog_res = "nothing"') == 1
  tail_idx = out.index('_fnlog_res = "nothing"')
  assert out.index('print("ping")') < tail_idx < out.index("except BaseException")


def test_no_tail_after_top_level_return():
  out = _rewrite(
    """
    @log_function
    def one():
        return 1
    """
  )
  assert '"nothing"' not in out


def test_no_tail_after_top_level_raise():
  out = _rewrite(
    """
    @log_function
    def fail():
        raise ValueError("no")
    """
  )
  assert '"nothing"' not in out
  assert 'raise ValueError("no")' in out


def test_nested_return_keeps_tail():
  out = _rewrite(
    """
    @log_function
    def pick(x):
        if x:
            return 1
        x += 1
    """
  )
  assert "return _fnlog_res" in out
  assert out.count('_fnlog_res = "nothing"') == 1


def test_bare_return_logs_nothing_sentinel():
  out = _rewrite(
    """
    @log_function
    def stop(x):
        if x:
            return
        print(x)
    """
  )
  # The bare return and the tail
  assert out.count('_fnlog_res = "nothing"') == 2


def test_one_line_suites_become_blocks():
  out = _rewrite(
    """
    @log_function
    def sign(x):
        if x < 0: return -1
        return 1
    """
  )
  assert "if x < 0:\n" in out
  assert "_fnlog_res = -1\n" in out


def test_one_line_function_body():
  out = _rewrite("@log_function\ndef one(): return 1\n")

  assert out.startswith("def one():\n")
  assert "    _fnlog_res = 1\n" in out


def test_semicolon_separated_statements_are_split():
  out = _rewrite(
    """
    @log_function
    def f(x):
        y = x; return y
    """
  )
  assert "y = x\n" in out
  assert "_fnlog_res = y\n" in out


def test_ignore_return_directive():
  out = _rewrite(
    """
    @log_function("ignore-return")
    def secret():
        return "hunter2"
    """
  )
  assert 'fn_return=repr("ignored")' in out
  assert "fn_return=repr(_fnlog_res)" not in out


def test_severity_and_context_key_are_configurable():
  out = _rewrite(
    """
    @log_function
    def f():
        pass
    """,
    severity="info",
    context_key="function",
  )
  assert '_fnlog_sink.emit("INFO", "f"' in out
  assert '_fnlog_context.insert("function", "f")' in out
  assert '_fnlog_context.remove("function")' in out


def test_other_decorators_are_kept():
  out = _rewrite(
    """
    @functools.lru_cache()
    @log_function
    def f():
        return 1
    """
  )
  assert out.startswith("@functools.lru_cache()\ndef f():")


def test_unmarked_functions_untouched():
  src = "def plain(x):\n    return x\n"
  assert _rewrite(src) == src


def test_method_receiver_not_serialized():
  out = _rewrite(
    """
    class Account:
        @log_function
        def deposit(self, amount):
            return amount

        @staticmethod
        @log_function
        def parse(raw):
            return raw
    """
  )
  assert 'f"self: ' not in out
  assert '_fnlog_args.append(f"amount: {amount!r}")' in out
  assert '_fnlog_args.append(f"raw: {raw!r}")' in out


def test_nested_function_returns_untouched():
  out = _rewrite(
    """
    @log_function
    def outer(items):
        def key(item):
            return item[0]
        return sorted(items, key=key)
    """
  )
  assert "return item[0]" in out
  assert out.count("return _fnlog_res") == 1


def test_snapshot_copy_before_capturing_closure():
  out = _rewrite(
    """
    @log_function
    def outer(limit, items):
        keep = [i for i in items if (lambda v: v < limit)(i)]
        return keep
    """
  )
  copy_idx = out.index("_fnlog_args = list(_fnlog_args)")
  assert copy_idx < out.index("keep = [i for i")
  assert out.count("_fnlog_args = list(_fnlog_args)") == 1


def test_no_snapshot_copy_for_non_capturing_closure():
  out = _rewrite(
    """
    @log_function
    def outer(items):
        return sorted(items, key=lambda v: -v)
    """
  )
  # ``items`` is used outside the lambda only
  assert "list(_fnlog_args)" not in out


def test_snapshot_copy_for_elif_lambda_goes_before_head_if():
  out = _rewrite(
    """
    @log_function
    def choose(x):
        if x > 1:
            pass
        elif (lambda: x)():
            pass
    """
  )
  assert out.index("_fnlog_args = list(_fnlog_args)") < out.index("if x > 1:")


def test_inner_marked_function_instrumented_independently():
  out = _rewrite(
    """
    @log_function
    def outer(x):
        @log_function
        def inner(y):
            return y
        return inner(x)
    """
  )
  assert '_fnlog_context.insert("fn_name", "inner")' in out
  assert '_fnlog_context.insert("fn_name", "outer")' in out
  assert "@log_function" not in out


def test_instrumented_names_recorded():
  module = cst.parse_module(
    textwrap.dedent(
      """
      class A:
          @log_function
          def m(self):
              pass

      @log_function
      def f():
          pass
      """
    )
  )
  rewriter = FunctionLogRewriter(RuntimeConfig())
  module.visit(rewriter)

  assert rewriter.instrumented == ["A.m", "f"]


def test_tracer_records_exits():
  tracer = TraceLogger()
  module = cst.parse_module("@log_function\ndef f(x):\n    if x:\n        return 1\n    return 2\n")
  module.visit(FunctionLogRewriter(RuntimeConfig(), tracer))

  events = tracer.export()
  exits = [e for e in events if e["type"] == TraceEventType.EXIT_INSTRUMENTED]
  summary = [e for e in events if e["type"] == TraceEventType.FUNCTION_INSTRUMENTED]

  assert [e["metadata"]["kind"] for e in exits] == ["return", "return"]
  assert summary[0]["metadata"]["synthetic_tail"] is False


def test_instrumenter_requires_marker():
  func = cst.parse_statement("def f():\n    pass\n")

  with pytest.raises(UnsupportedSyntaxError):
    FunctionInstrumenter(RuntimeConfig()).instrument(func)


def test_return_in_finally_rejected():
  func = cst.parse_statement(
    "@log_function\ndef inner(a):\n    try:\n        return a\n    finally:\n        return -1\n"
  )

  with pytest.raises(UnsupportedSyntaxError, match="return inside a finally block") as exc:
    FunctionInstrumenter(RuntimeConfig()).instrument(func)

  assert isinstance(exc.value.node, cst.Return)


def test_generator_rejected():
  func = cst.parse_statement("@log_function\ndef gen(n):\n    yield from range(n)\n")

  with pytest.raises(UnsupportedSyntaxError, match="generator functions cannot be instrumented in 'gen'"):
    FunctionInstrumenter(RuntimeConfig()).instrument(func)

"""
Behavioural tests: rewritten functions are executed and their emissions observed.

Verifies that:
1. Every execution path emits exactly one record, at the right exit.
2. Return values, exceptions and side effects are unchanged.
3. The ``fn_name`` context tag is visible during emission and gone afterwards.
4. Closures keep their own returns and can use the arguments after capture.
"""

import asyncio
import textwrap

import pytest


def _src(code: str) -> str:
  return textwrap.dedent(code)


def test_no_early_exit_logs_tail_once(load, sink):
  ns = load(
    _src(
      """
      @log_function
      def greet(name):
          message = "hi " + name
          print(message)
      """
    )
  )

  assert ns["greet"]("bob") is None
  assert len(sink.records) == 1
  record = sink.records[0]
  assert record.fn_name == "greet"
  assert record.fn_args == ("name: 'bob'",)
  assert record.fn_return == "'nothing'"


def test_each_return_path_logs_once_with_true_value(load, sink):
  ns = load(
    _src(
      """
      @log_function
      def classify(n):
          if n < 0:
              return "negative"
          for i in range(3):
              if i == n:
                  return ["small", i]
          while True:
              return {"big": n}
      """
    )
  )
  classify = ns["classify"]

  assert classify(-5) == "negative"
  assert classify(2) == ["small", 2]
  assert classify(10) == {"big": 10}
  assert sink.returns() == ["'negative'", "['small', 2]", "{'big': 10}"]


def test_return_value_is_evaluated_once(load, sink):
  calls = []

  def effect():
    calls.append(1)
    return len(calls)

  ns = load("@log_function\ndef f():\n    return effect()\n", extra={"effect": effect})

  assert ns["f"]() == 1
  assert calls == [1]
  assert sink.returns() == ["1"]


def test_returned_object_identity_preserved(load):
  ns = load("@log_function\ndef same(x):\n    return x\n")
  marker = object()
  assert ns["same"](marker) is marker


def test_failure_logged_once_then_propagated(load, sink):
  ns = load(
    _src(
      """
      @log_function
      def parse(text):
          value = int(text)
          return value * 2
      """
    )
  )
  parse = ns["parse"]

  with pytest.raises(ValueError) as exc:
    parse("x1")

  assert len(sink.records) == 1
  assert sink.records[0].fn_return == repr(exc.value)
  assert sink.records[0].fn_args == ("text: 'x1'",)


def test_success_path_has_no_failure_emission(load, sink):
  ns = load(
    _src(
      """
      @log_function
      def parse(text):
          value = int(text)
          return value * 2
      """
    )
  )

  assert ns["parse"]("21") == 42
  assert sink.returns() == ["42"]


def test_failure_in_nested_block_unwinds_to_function(load, sink):
  ns = load(
    _src(
      """
      @log_function
      def check(items):
          for item in items:
              if item is None:
                  raise LookupError("missing")
          return len(items)
      """
    )
  )

  with pytest.raises(LookupError, match="missing"):
    ns["check"]([1, None])

  assert sink.returns() == ["LookupError('missing')"]


def test_handled_exception_is_not_an_exit(load, sink):
  ns = load(
    _src(
      """
      @log_function
      def safe_div(a, b):
          try:
              return a / b
          except ZeroDivisionError:
              pass
          return 0
      """
    )
  )

  assert ns["safe_div"](1, 0) == 0
  assert sink.returns() == ["0"]


def test_nested_value_is_not_logged(load, sink):
  ns = load(
    _src(
      """
      @log_function
      def pick(flag):
          if flag:
              label = (lambda: "inner")()
              def helper():
                  return "helper"
              label = label + helper()
          else:
              label = "plain"
          return label
      """
    )
  )

  assert ns["pick"](True) == "innerhelper"
  assert sink.returns() == ["'innerhelper'"]


def test_closure_return_not_logged_and_args_usable(load, sink):
  ns = load(
    _src(
      """
      @log_function
      def limited(items, limit):
          def keep(item):
              if item > limit:
                  return False
              return True
          kept = [i for i in items if keep(i)]
          return kept, limit
      """
    )
  )

  assert ns["limited"]([1, 5, 2], 3) == ([1, 2], 3)
  assert len(sink.records) == 1
  assert sink.records[0].fn_args == ("items: [1, 5, 2]", "limit: 3")


def test_returned_closure_does_not_log_for_outer(load, sink):
  ns = load(
    _src(
      """
      @log_function
      def adder(n):
          return lambda x: x + n
      """
    )
  )

  add_two = ns["adder"](2)
  assert add_two(5) == 7
  assert add_two(1) == 3
  assert len(sink.records) == 1


def test_ignore_return_always_logs_sentinel(load, sink):
  ns = load(
    _src(
      """
      @log_function("ignore-return")
      def token(user):
          if user:
              return "s3cr3t"
          raise PermissionError(user)
      """
    )
  )

  assert ns["token"]("amy") == "s3cr3t"
  with pytest.raises(PermissionError):
    ns["token"]("")

  assert sink.returns() == ["'ignored'", "'ignored'"]


def test_zero_parameters_no_return(load, sink):
  ns = load("@log_function\ndef tick():\n    pass\n")

  ns["tick"]()

  assert len(sink.records) == 1
  assert sink.records[0].fn_args == ()
  assert sink.records[0].fn_return == "'nothing'"


def test_emission_routed_by_name_at_configured_severity(load, sink):
  ns = load("@log_function\ndef tick():\n    pass\n", severity="warning")
  ns["tick"]()

  assert sink.emissions[0].severity == "WARNING"
  assert sink.emissions[0].target == "tick"


def test_context_tag_present_during_emission_only(load, sink, context):
  ns = load(
    _src(
      """
      @log_function
      def work(x):
          seen.append(ctx.get("fn_name"))
          if x:
              return 1
          raise RuntimeError()
      """
    ),
    extra={"seen": [], "ctx": context},
  )

  ns["work"](1)
  with pytest.raises(RuntimeError):
    ns["work"](0)

  assert ns["seen"] == ["work", "work"]
  assert [e.context.get("fn_name") for e in sink.emissions] == ["work", "work"]
  assert "fn_name" not in context


def test_nested_calls_restore_outer_tag(load, sink, context):
  ns = load(
    _src(
      """
      @log_function
      def inner(x):
          return x + 1

      @log_function
      def outer(x):
          y = inner(x)
          seen.append(ctx.get("fn_name"))
          return y * 2
      """
    ),
    extra={"seen": [], "ctx": context},
  )

  assert ns["outer"](1) == 4
  assert ns["seen"] == ["outer"]
  assert [(e.target, e.context["fn_name"]) for e in sink.emissions] == [("inner", "inner"), ("outer", "outer")]
  assert context.depth("fn_name") == 0


def test_methods_skip_receiver(load, sink):
  ns = load(
    _src(
      """
      class Counter:
          def __init__(self):
              self.total = 0

          @log_function
          def add(self, amount, *extra, scale=1, **opts):
              self.total += amount * scale
              return self.total

          @classmethod
          @log_function
          def create(cls, start):
              c = cls()
              c.total = start
              return c.total

          @staticmethod
          @log_function
          def zero(unit):
              return 0
      """
    )
  )
  Counter = ns["Counter"]

  assert Counter().add(2, 9, scale=3, tag="t") == 6
  assert Counter.create(5) == 5
  assert Counter.zero("kg") == 0
  assert [r.fn_args for r in sink.records] == [
    ("amount: 2", "extra: (9,)", "scale: 3", "opts: {'tag': 't'}"),
    ("start: 5",),
    ("unit: 'kg'",),
  ]


def test_arguments_captured_at_entry(load, sink):
  ns = load(
    _src(
      """
      @log_function
      def consume(items):
          items.append("mutated")
          items = None
          return "done"
      """
    )
  )

  ns["consume"](["a"])
  assert sink.records[0].fn_args == ("items: ['a']",)


def test_record_args_are_a_tuple(load, sink):
  ns = load(
    _src(
      """
      @log_function
      def twice(x):
          keep = lambda: x
          return keep() * 2
      """
    )
  )

  ns["twice"](4)
  assert isinstance(sink.records[0].fn_args, tuple)


def test_async_function(load, sink, context):
  ns = load(
    _src(
      """
      import asyncio

      @log_function
      async def fetch(key):
          await asyncio.sleep(0)
          if key == "bad":
              raise KeyError(key)
          return key.upper()
      """
    )
  )

  assert asyncio.run(ns["fetch"]("ok")) == "OK"
  with pytest.raises(KeyError):
    asyncio.run(ns["fetch"]("bad"))

  assert sink.returns() == ["'OK'", "KeyError('bad')"]


def test_async_inner_block_returns_are_untouched(load, sink):
  ns = load(
    _src(
      """
      import asyncio

      @log_function
      async def gather_lengths(words):
          async def length(word):
              if not word:
                  return 0
              return len(word)
          sizes = await asyncio.gather(*(length(w) for w in words))
          return sum(sizes)
      """
    )
  )

  assert asyncio.run(ns["gather_lengths"](["ab", "", "c"])) == 3
  assert sink.returns() == ["3"]


def test_finally_cleanup_logs_once_and_restores_outer_tag(load, sink, context):
  ns = load(
    _src(
      """
      @log_function
      def read(handle):
          try:
              return handle.pop()
          finally:
              handle.append("closed")

      @log_function
      def outer(handle):
          value = read(handle)
          return value, ctx.get("fn_name")
      """
    ),
    extra={"ctx": context},
  )

  handle = ["data"]
  assert ns["outer"](handle) == ("data", "outer")
  assert handle == ["closed"]
  assert [(r.fn_name, r.fn_return) for r in sink.records] == [("read", "'data'"), ("outer", "('data', 'outer')")]
  assert context.depth("fn_name") == 0

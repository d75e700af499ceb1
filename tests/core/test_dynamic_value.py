"""Unit tests for dynamic values and the request context."""

import pytest

from loadflow.core.dynamic_value import Context, Derived, Literal, dynamic, resolve


class TestContext:
    """Tests for Context."""

    def test_empty_context(self):
        ctx = Context()

        assert len(ctx) == 0
        assert ctx.get("anything") is None
        assert ctx.depth == 0

    def test_initial_values(self):
        ctx = Context({"sessionId": "s1"})

        assert ctx["sessionId"] == "s1"
        assert "sessionId" in ctx

    def test_merge_returns_new_context(self):
        """Test that merging never mutates the original context."""
        original = Context({"a": 1})

        merged = original.merge({"b": 2})

        assert original.to_dict() == {"a": 1}
        assert merged.to_dict() == {"a": 1, "b": 2}

    def test_later_write_shadows_earlier(self):
        ctx = Context({"id": 1}).merge({"id": 2})

        assert ctx["id"] == 2
        assert len(ctx) == 1
        assert list(ctx) == ["id"]

    def test_merge_empty_is_noop(self):
        ctx = Context({"a": 1})

        assert ctx.merge({}) is ctx

    def test_keys_are_never_removed(self):
        ctx = Context({"a": 1}).merge({"b": 2}).merge({"c": 3})

        assert set(ctx) == {"a", "b", "c"}
        assert ctx.depth == 3

    def test_missing_key_raises_key_error(self):
        with pytest.raises(KeyError):
            Context()["nope"]

    def test_equality_with_mapping(self):
        assert Context({"a": 1}).merge({"b": 2}) == {"a": 1, "b": 2}
        assert Context({"a": 1}) != {"a": 2}

    def test_repr(self):
        assert repr(Context({"a": 1})) == "Context({'a': 1})"


class TestDynamic:
    """Tests for dynamic() wrapping."""

    def test_plain_value_becomes_literal(self):
        assert dynamic("/users") == Literal("/users")

    def test_callable_becomes_derived(self):
        fn = lambda ctx: ctx.get("id")  # noqa: E731

        wrapped = dynamic(fn)

        assert isinstance(wrapped, Derived)
        assert wrapped.fn is fn

    def test_wrapped_values_pass_through(self):
        literal = Literal(5)
        derived = Derived(lambda ctx: 5)

        assert dynamic(literal) is literal
        assert dynamic(derived) is derived


class TestResolve:
    """Tests for resolve()."""

    def test_literal_resolves_to_itself(self):
        assert resolve(Literal({"a": 1}), Context()) == {"a": 1}

    def test_derived_reads_context(self):
        ctx = Context({"taskId": 42})

        assert resolve(Derived(lambda c: f"/tasks/{c.get('taskId')}"), ctx) == "/tasks/42"

    def test_unwrapped_value_is_literal(self):
        assert resolve(7, Context()) == 7

    def test_derived_errors_propagate(self):
        def broken(ctx):
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            resolve(Derived(broken), Context())

    def test_derived_sees_latest_merge(self):
        value = Derived(lambda c: c.get("step"))
        ctx = Context({"step": 1})

        assert resolve(value, ctx) == 1
        assert resolve(value, ctx.merge({"step": 2})) == 2

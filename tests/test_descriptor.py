"""Tests for tokens, flags and suspension descriptors."""

import pytest

import pykairos.core.descriptor as descriptor_module
from pykairos import (
    ActiveFlag,
    Interest,
    SuspensionDescriptor,
    Token,
    TokenAllocator,
    again,
    any_of,
    later,
    merge_all,
    never,
)


@pytest.fixture
def frozen_clock(monkeypatch):
    """Pin the runtime clock at t=100.0."""
    monkeypatch.setattr(descriptor_module, "monotonic", lambda: 100.0)
    return 100.0


# =============================================================================
# Tokens
# =============================================================================


def test_allocator_issues_increasing_unique_ids():
    allocator = TokenAllocator()
    tokens = [allocator.allocate() for _ in range(100)]

    ids = [token.id for token in tokens]
    assert ids == sorted(ids)
    assert len(set(ids)) == 100
    assert allocator.issued == 100


def test_each_token_gets_its_own_flag():
    allocator = TokenAllocator()
    first, second = allocator.allocate(), allocator.allocate()

    first.flag.mark()

    assert first.active
    assert not second.active


def test_token_equality_ignores_flag():
    a = Token(7)
    b = Token(7)
    a.flag.mark()

    assert a == b
    assert hash(a) == hash(b)
    assert {a, b} == {a}


def test_active_flag_counts_events():
    flag = ActiveFlag()
    assert not flag

    flag.mark()
    flag.mark(2)
    assert flag.count == 3
    assert flag

    flag.reset()
    assert flag.count == 0
    assert not flag


def test_interest_maps_to_selector_events():
    import selectors

    assert Interest.READABLE.events == selectors.EVENT_READ
    assert Interest.WRITABLE.events == selectors.EVENT_WRITE
    assert Interest.READABLE | Interest.WRITABLE == Interest.BOTH


# =============================================================================
# Builders
# =============================================================================


def test_never_is_empty_without_deadline():
    d = never()
    assert d.tokens == frozenset()
    assert d.deadline is None
    assert d.is_never()
    assert not d.is_ready()


def test_later_sets_absolute_deadline(frozen_clock):
    d = later(0.5)
    assert d.tokens == frozenset()
    assert d.deadline == pytest.approx(100.5)
    assert not d.is_never()


def test_again_with_and_without_timeout(frozen_clock):
    token = Token(1)

    plain = again(token)
    assert plain.tokens == frozenset({token})
    assert plain.deadline is None

    bounded = again(token, 2.0)
    assert bounded.deadline == pytest.approx(102.0)


def test_any_of_collects_tokens():
    tokens = [Token(1), Token(2), Token(3)]
    d = any_of(tokens)
    assert d.tokens == frozenset(tokens)
    assert d.deadline is None


# =============================================================================
# Merge
# =============================================================================


def test_merge_unions_tokens_and_takes_earliest_deadline():
    a = SuspensionDescriptor(tokens=frozenset({Token(1)}), deadline=10.0)
    b = SuspensionDescriptor(tokens=frozenset({Token(2)}), deadline=5.0)

    merged = a.merge(b)

    assert merged.tokens == frozenset({Token(1), Token(2)})
    assert merged.deadline == 5.0


def test_merge_treats_missing_deadline_as_infinity():
    a = SuspensionDescriptor(tokens=frozenset({Token(1)}))
    b = SuspensionDescriptor(deadline=3.0)

    assert a.merge(b).deadline == 3.0
    assert b.merge(a).deadline == 3.0
    assert a.merge(a).deadline is None


def test_merge_with_never_is_identity():
    a = SuspensionDescriptor(tokens=frozenset({Token(4)}), deadline=1.0)
    assert a.merge(never()) == a
    assert never().merge(a) == a


def test_merge_all_of_nothing_is_never():
    assert merge_all([]) == never()


def test_merged_tokens_share_flags():
    token = Token(9)
    merged = again(token).merge(later(60))

    token.flag.mark()

    assert merged.is_ready()


# =============================================================================
# Readiness and timeouts
# =============================================================================


def test_is_ready_when_deadline_elapsed():
    d = SuspensionDescriptor(deadline=50.0)
    assert d.is_ready(now=50.0)
    assert d.is_ready(now=51.0)
    assert not d.is_ready(now=49.0)


def test_is_ready_when_any_token_active():
    a, b = Token(1), Token(2)
    d = any_of([a, b])
    assert not d.is_ready()

    b.flag.mark()
    assert d.is_ready()


def test_timeout_relative_to_now():
    d = SuspensionDescriptor(deadline=100.5)
    assert d.timeout(0.001, now=100.0) == pytest.approx(0.5)


def test_timeout_uses_minimum_when_deadline_passed():
    d = SuspensionDescriptor(deadline=100.0)
    assert d.timeout(0.001, now=100.0) == 0.001
    assert d.timeout(0.001, now=250.0) == 0.001


def test_timeout_none_without_deadline():
    assert again(Token(1)).timeout(0.001) is None


def test_activate_resets_then_marks_fired():
    a, b, c = Token(1), Token(2), Token(3)
    a.flag.mark()
    d = any_of([a, b])

    d.activate({b: 2, c: 1})

    assert a.flag.count == 0
    assert b.flag.count == 2
    # not referenced by the descriptor: untouched
    assert c.flag.count == 0


def test_activate_accepts_plain_token_set():
    a = Token(1)
    d = again(a)

    d.activate({a})
    assert a.flag.count == 1

    d.activate(set())
    assert a.flag.count == 0


def test_str_lists_sorted_token_ids():
    d = any_of([Token(3), Token(1)])
    assert "tokens=[1, 3]" in str(d)


def test_consume_clears_only_referenced_flags():
    a, b = Token(1), Token(2)
    a.flag.mark()
    b.flag.mark()

    again(a).consume()

    assert not a.active
    assert b.active

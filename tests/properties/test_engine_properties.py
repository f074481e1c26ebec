"""Property-based tests for rule ordering, prompt matching and responses."""

from hypothesis import given, strategies as st

from rulez.config import PromptMatch, config_from_dict
from rulez.engine import RegexCache, matches_prompt, merge_responses
from rulez.enums import MatchMode
from rulez.models import Response
from rulez.utils import create_null_logger

# =============================================================================
# Strategies
# =============================================================================

_WORD_ALPHABET = "abcdefghijklmnopqrstuvwxyz"

word = st.text(alphabet=_WORD_ALPHABET, min_size=1, max_size=8)

# Plain or negated word patterns
prompt_pattern = st.builds(
    lambda negated, w: f"not:{w}" if negated else w, st.booleans(), word
)

prompt_text = st.lists(word, min_size=0, max_size=10).map(" ".join)

priorities = st.lists(st.integers(min_value=-100, max_value=100), max_size=12)

optional_text = st.none() | st.text(max_size=40)

response = st.builds(
    Response,
    continue_=st.booleans(),
    context=optional_text,
    reason=optional_text,
)


# =============================================================================
# Rule Ordering Properties
# =============================================================================


@given(values=priorities)
def test_enabled_rules_sorted_by_priority(values: list[int]) -> None:
    """Property: enabled rules are in non-increasing priority order."""
    config = config_from_dict(
        {"rules": [{"name": f"r{i}", "priority": p} for i, p in enumerate(values)]}
    )

    ordered = [rule.effective_priority for rule in config.enabled_rules()]

    assert ordered == sorted(values, reverse=True)


@given(values=priorities)
def test_equal_priorities_keep_declaration_order(values: list[int]) -> None:
    """Property: rules with the same priority keep their file order."""
    config = config_from_dict(
        {"rules": [{"name": f"r{i}", "priority": p} for i, p in enumerate(values)]}
    )

    ordered = config.enabled_rules()

    for earlier, later in zip(ordered, ordered[1:], strict=False):
        if earlier.effective_priority == later.effective_priority:
            assert int(earlier.name[1:]) < int(later.name[1:])


# =============================================================================
# Prompt Matching Properties
# =============================================================================


@given(patterns=st.lists(prompt_pattern, min_size=1, max_size=5), prompt=prompt_text)
def test_all_mode_implies_any_mode(patterns: list[str], prompt: str) -> None:
    """Property: a prompt matching in all mode also matches in any mode."""
    cache = RegexCache()
    logger = create_null_logger()

    all_result = matches_prompt(
        prompt,
        PromptMatch(patterns=patterns, mode=MatchMode.ALL),
        regex_cache=cache,
        logger=logger,
    )
    any_result = matches_prompt(
        prompt,
        PromptMatch(patterns=patterns, mode=MatchMode.ANY),
        regex_cache=cache,
        logger=logger,
    )

    assert not all_result or any_result


@given(pattern=word, prompt=prompt_text)
def test_negation_inverts_single_pattern(pattern: str, prompt: str) -> None:
    """Property: ``not:`` flips the result of a single valid pattern."""
    cache = RegexCache()
    logger = create_null_logger()

    plain = matches_prompt(
        prompt, PromptMatch(patterns=[pattern]), regex_cache=cache, logger=logger
    )
    negated = matches_prompt(
        prompt,
        PromptMatch(patterns=[f"not:{pattern}"]),
        regex_cache=cache,
        logger=logger,
    )

    assert plain != negated


@given(patterns=st.lists(prompt_pattern, min_size=1, max_size=5), prompt=prompt_text)
def test_cached_patterns_give_stable_results(patterns: list[str], prompt: str) -> None:
    """Property: reusing a warm regex cache never changes the outcome."""
    cache = RegexCache()
    logger = create_null_logger()
    prompt_match = PromptMatch(patterns=patterns)

    first = matches_prompt(prompt, prompt_match, regex_cache=cache, logger=logger)
    second = matches_prompt(prompt, prompt_match, regex_cache=cache, logger=logger)

    assert first == second


# =============================================================================
# Response Properties
# =============================================================================


@given(original=response)
def test_response_json_round_trip(original: Response) -> None:
    """Property: a response survives serialization with the continue key."""
    restored = Response.model_validate(original.to_json_dict())

    assert restored == original


@given(responses=st.lists(response, min_size=1, max_size=4))
def test_merge_blocks_if_any_response_blocks(responses: list[Response]) -> None:
    """Property: the merged response blocks exactly when one input blocks."""
    merged = merge_responses(responses)

    assert merged.blocked == any(r.blocked for r in responses)


@given(responses=st.lists(response, min_size=1, max_size=4))
def test_merge_keeps_first_block(responses: list[Response]) -> None:
    """Property: the first blocking response is returned unchanged."""
    blocking = [r for r in responses if r.blocked]
    merged = merge_responses(responses)

    if blocking:
        assert merged == blocking[0]

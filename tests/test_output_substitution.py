import pytest

from payjoin.output_substitution import OutputSubstitution

ENABLED = OutputSubstitution.ENABLED
DISABLED = OutputSubstitution.DISABLED


@pytest.mark.parametrize(
    "left, right, expected",
    [
        (ENABLED, ENABLED, ENABLED),
        (ENABLED, DISABLED, DISABLED),
        (DISABLED, ENABLED, DISABLED),
        (DISABLED, DISABLED, DISABLED),
    ],
)
def test_combine(left, right, expected):
    assert left.combine(right) is expected


@pytest.mark.parametrize(
    "left, right",
    [
        (ENABLED, ENABLED),
        (ENABLED, DISABLED),
        (DISABLED, ENABLED),
        (DISABLED, DISABLED),
    ],
)
def test_combine_is_commutative(left, right):
    forward = OutputSubstitution.combine(left, right)
    backward = OutputSubstitution.combine(right, left)
    assert forward is backward


def test_disabled_absorbs():
    results = [OutputSubstitution.combine(flag, DISABLED) for flag in OutputSubstitution]
    assert results == [DISABLED] * len(OutputSubstitution)
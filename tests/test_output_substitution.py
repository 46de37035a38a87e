import pytest

from payjoin.output_substitution import OutputSubstitution

E = OutputSubstitution.ENABLED
D = OutputSubstitution.DISABLED


@pytest.mark.parametrize(
    "left, right, expected",
    [(E, E, E), (E, D, D), (D, E, D), (D, D, D)],
)
def test_combine(left, right, expected):
    assert left.combine(right) is expected


@pytest.mark.parametrize("left", [E, D])
@pytest.mark.parametrize("right", [E, D])
def test_combine_is_symmetric(left, right):
    forward = OutputSubstitution.combine(left, right)
    backward = OutputSubstitution.combine(right, left)
    assert forward is backward
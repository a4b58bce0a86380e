from refstruct import rules


def test_equal_fields():
    rule = rules.equal('a', 'b')

    assert rule({'a': 1, 'b': 1}, b'') is False
    assert rule({'a': 1, 'b': 2}, b'') == '"1" is not equal to "2"'


def test_equal_literal():
    rule = rules.equal('a', 0xcafe)

    assert rule({'a': 0xcafe}, b'') is False
    assert rule({'a': 1}, b'') == '"1" is not equal to "51966"'


def test_equal_is_reusable():
    """Check that resolving the operands doesn't change the rule."""
    rule = rules.equal('a', 'b')

    assert rule({'a': 1, 'b': 2}, b'')
    assert rule({'a': 3, 'b': 3}, b'') is False

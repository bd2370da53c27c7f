import pytest

from distance import distance


@pytest.mark.parametrize("a, b, expected", [
    ("kitten", "sitting", 3),
    ("", "abc", 3),
    ("abc", "", 3),
    ("", "", 0),
    ("abc", "abc", 0),
    ("paypa1.com", "paypal.com", 1),
    ("rnicrosoft.com", "microsoft.com", 2),
    ("flaw", "lawn", 2),
])
def test_known_distances(a, b, expected):
    assert distance(a, b) == expected


@pytest.mark.parametrize("a, b", [
    ("kitten", "sitting"),
    ("paypal.com", "pay-pal.co"),
    ("", "xyz"),
    ("amazon", "arnazon"),
])
def test_distance_is_symmetric(a, b):
    assert distance(a, b) == distance(b, a)


def test_distance_is_case_sensitive():
    assert distance("PayPal", "paypal") == 2

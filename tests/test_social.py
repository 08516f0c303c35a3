import pytest

from pantry_api.errors import ValidationError
from pantry_api.social import average_rating, validate_rating


@pytest.mark.parametrize(
    "values, expected",
    [
        ([], 0),
        ([4, 5], 4.5),
        ([3, 3, 4], 3.3),
        ([5, 5, 4], 4.7),
        ([1], 1.0),
        # exact halves round up, not to even
        ([2, 2, 2, 3], 2.3),
        ([1, 1, 1, 2], 1.3),
    ],
)
def test_average_rating(values, expected):
    assert average_rating(values) == expected


@pytest.mark.parametrize("bad", [0, 6, -1, 2.5, "4", None, True])
def test_validate_rating_rejects_out_of_range(bad):
    with pytest.raises(ValidationError) as exc:
        validate_rating(bad)
    assert exc.value.errors[0]["field"] == "rating"


@pytest.mark.parametrize("good", [1, 3, 5])
def test_validate_rating_accepts_range(good):
    assert validate_rating(good) == good

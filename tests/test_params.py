import pytest
from starlette.datastructures import QueryParams

from imagegem.models import ImageFormat, WebPMode
from imagegem.services.params import ParameterError, parse_transform_request

URL = "https://example.com/cat.jpg"


class TestDefaults:
    def test_empty_query_is_a_noop_request(self):
        req = parse_transform_request(URL, {})
        assert req.width == 0 and req.height == 0
        assert req.rotate == 0
        assert req.quality is None
        assert req.format is ImageFormat.UNSPECIFIED
        assert req.sharpen == 0.0 and req.blur == 0.0
        assert not req.upscale and not req.strip_metadata
        assert req.webp is WebPMode.OFF
        assert not req.has_transforms

    def test_empty_values_count_as_absent(self):
        req = parse_transform_request(URL, {"w": "", "q": ""})
        assert req.width == 0
        assert req.quality is None


class TestAliases:
    def test_short_and_long_keys(self):
        req = parse_transform_request(
            URL,
            {"height": "10", "width": "20", "rotate": "90", "quality": "55", "format": "PNG", "sharpen": "0.5", "blur": "0.25"},
        )
        assert (req.height, req.width, req.rotate, req.quality) == (10, 20, 90, 55)
        assert req.format is ImageFormat.PNG
        assert req.sharpen == 0.5 and req.blur == 0.25

    def test_first_alias_wins(self):
        req = parse_transform_request(URL, {"h": "10", "height": "99999"})
        assert req.height == 10

    def test_later_alias_used_when_first_missing(self):
        req = parse_transform_request(URL, {"height": "300"})
        assert req.height == 300

    def test_repeated_key_uses_first_value(self):
        req = parse_transform_request(URL, QueryParams("w=50&w=20"))
        assert req.width == 50

    @pytest.mark.parametrize(
        "literal, expected",
        [("jpg", ImageFormat.JPEG), ("heic", ImageFormat.HEIF), ("tif", ImageFormat.TIFF), ("j2k", ImageFormat.JP2K)],
    )
    def test_format_aliases(self, literal, expected):
        assert parse_transform_request(URL, {"f": literal}).format is expected

    def test_flags(self):
        req = parse_transform_request(URL, {"up": "true", "strip": "TRUE", "webp": "force"})
        assert req.upscale and req.strip_metadata
        assert req.webp is WebPMode.FORCE

    def test_upscale_alias_and_non_true_values(self):
        assert parse_transform_request(URL, {"upscale": "true"}).upscale
        assert not parse_transform_request(URL, {"up": "1"}).upscale
        assert parse_transform_request(URL, {"webp": "sometimes"}).webp is WebPMode.OFF


class TestRejections:
    @pytest.mark.parametrize(
        "query, key",
        [
            ({"h": "99999"}, "h"),
            ({"width": "20001"}, "width"),
            ({"w": "-1"}, "w"),
            ({"r": "361"}, "r"),
            ({"q": "0"}, "q"),
            ({"quality": "101"}, "quality"),
            ({"s": "1.5"}, "s"),
            ({"blur": "-0.1"}, "blur"),
            ({"b": "nan"}, "b"),
            ({"h": "ten"}, "h"),
            ({"s": "sharp"}, "s"),
            ({"f": "bmp"}, "f"),
            ({"w": "1_000"}, "w"),
            ({"q": "5.0"}, "q"),
            ({"b": "0_5"}, "b"),
        ],
    )
    def test_invalid_values_name_the_key(self, query, key):
        with pytest.raises(ParameterError) as excinfo:
            parse_transform_request(URL, query)
        assert excinfo.value.key == key
        assert excinfo.value.value == query[key]
        assert key in str(excinfo.value)

    def test_bounds_are_inclusive(self):
        req = parse_transform_request(URL, {"h": "20000", "w": "0", "r": "360", "q": "1", "s": "1", "b": "0"})
        assert req.height == 20000 and req.rotate == 360 and req.quality == 1

    def test_configurable_dimension_ceiling(self):
        with pytest.raises(ParameterError):
            parse_transform_request(URL, {"w": "600"}, max_dimension=500)


def test_any_parameter_marks_request_as_transforming():
    assert parse_transform_request(URL, {"q": "80"}).has_transforms
    assert parse_transform_request(URL, {"webp": "auto"}).has_transforms

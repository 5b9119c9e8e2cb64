from gemini_bridge.common.utils import generate_id, parse_data_uri, strip_prefix


def test_generate_id_is_29_alphanumeric_chars():
    value = generate_id()
    assert len(value) == 29
    assert value.isalnum()
    assert value.isascii()


def test_generate_id_varies():
    assert len({generate_id() for _ in range(20)}) == 20


def test_parse_data_uri_base64():
    assert parse_data_uri("data:image/png;base64,iVBORw0KGgo=") == ("image/png", "iVBORw0KGgo=")


def test_parse_data_uri_without_base64_marker():
    assert parse_data_uri("data:text/plain,hello") == ("text/plain", "hello")


def test_parse_data_uri_rejects_other_strings():
    assert parse_data_uri("not-a-uri") is None


def test_strip_prefix():
    assert strip_prefix("models/gemini-2.5-flash", "models/") == "gemini-2.5-flash"
    assert strip_prefix("gemini-2.5-flash", "models/") == "gemini-2.5-flash"

from osc_monitor.logging_utils import (
    get_request_id,
    mask_secrets,
    set_request_id,
    truncate_and_hash,
)


def test_mask_secrets_nested() -> None:
    data = {
        "grafana_url": "https://grafana.test",
        "grafana_token": "abc",
        "headers": [{"Authorization": "Bearer abc", "Accept": "json"}],
    }
    masked = mask_secrets(data)
    assert masked["grafana_token"] == "***"
    assert masked["grafana_url"] == "https://grafana.test"
    assert masked["headers"] == [{"Authorization": "***", "Accept": "json"}]


def test_truncate_and_hash() -> None:
    short = truncate_and_hash("hello", 16)
    long = truncate_and_hash("x" * 100, 16)
    assert short["truncated"] is False
    assert short["input_truncated"] == "hello"
    assert long["truncated"] is True
    assert long["input_truncated"].startswith("x" * 16)
    assert long["input_hash"] == truncate_and_hash("x" * 100)["input_hash"]


def test_request_id_context() -> None:
    set_request_id("rid-1")
    assert get_request_id() == "rid-1"
    set_request_id(None)
    assert get_request_id() is None

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import logging

from app.core.logging import SecretRedactionFilter, mask_mapping, redact


def _record(msg: str, *args, **extra) -> logging.LogRecord:
    record = logging.LogRecord("test", logging.INFO, __file__, 1, msg, args, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_redact_keeps_first_and_last_character() -> None:
    assert redact("1//0abcdefXYZ") == "1****Z"
    assert redact("ab") == "****"


def test_mask_mapping_recurses_into_nested_values() -> None:
    masked = mask_mapping(
        {
            "projectId": "proj-1",
            "auth": {"refresh_token": "1//secret-value", "has_refresh_token": True},
            "items": [{"client_secret": "shh-secret"}],
        }
    )

    assert masked["projectId"] == "proj-1"
    assert masked["auth"]["refresh_token"] == "1****e"
    assert masked["auth"]["has_refresh_token"] is True
    assert masked["items"][0]["client_secret"] == "s****t"


def test_filter_masks_message_and_extra() -> None:
    record = _record(
        'exchange failed refresh_token="1//secret" for %s',
        "proj-1",
        data={"access_token": "ya29.token-value"},
    )

    assert SecretRedactionFilter().filter(record) is True

    rendered = record.getMessage()
    assert "1//secret" not in rendered
    assert "proj-1" in rendered
    assert record.data["access_token"] == "y****e"


def test_filter_masks_sensitive_extra_attributes() -> None:
    record = _record("configured", client_secret="abcdef")

    SecretRedactionFilter().filter(record)

    assert record.client_secret == "a****f"

"""Log helpers."""

import pytest

from cashe.schemas.core import Platform
from cashe.utils.logger import chat_label, get_logger


@pytest.mark.parametrize("platform, chat_id, expected", [
    (Platform.WHATSAPP, "5491123456789", "whatsapp:…6789"),
    (Platform.TELEGRAM, "123456789", "telegram:123456789"),
    ("whatsapp", "12", "whatsapp:12"),
])
def test_chat_label_hides_phone_numbers(platform, chat_id, expected):
    assert chat_label(platform, chat_id) == expected


def test_get_logger_binds_module_name():
    records = []
    sink_id = get_logger("nlp_agent").add(lambda message: records.append(message.record), level="INFO")
    try:
        get_logger("nlp_agent").info("hola")
    finally:
        get_logger().remove(sink_id)
    assert records[-1]["extra"]["name"] == "nlp_agent"

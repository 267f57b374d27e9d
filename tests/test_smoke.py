import logging

from storefront_client.logging_config import get_logger, setup_logging
from storefront_client.smoke import _main


def test_setup_logging_quiets_http_stack():
    setup_logging(log_file=None)

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING
    assert get_logger("storefront_client.smoke") is logging.getLogger("storefront_client.smoke")


async def test_unreachable_backend_exits_with_connection_error(caplog):
    with caplog.at_level(logging.CRITICAL, logger="storefront_client.smoke"):
        code = await _main("http://127.0.0.1:9/api")

    assert code == 2
    assert "Connection failed" in caplog.text

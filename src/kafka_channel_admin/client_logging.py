import logging

CLIENT_LOGGER_NAME = "kafka_channel_admin.client"

client_logger = logging.getLogger(CLIENT_LOGGER_NAME)
client_logger.disabled = True


def enable_client_logging(enabled: bool) -> None:
    """Switch the log output of the Kafka client library on or off.

    Every confluent-kafka client created by this package logs through
    ``client_logger``; it starts out disabled.
    """
    client_logger.disabled = not enabled
    if enabled and client_logger.level == logging.NOTSET:
        client_logger.setLevel(logging.DEBUG)
    logging.getLogger(__name__).debug(f"Kafka client logging {'enabled' if enabled else 'disabled'}")


def is_client_logging_enabled() -> bool:
    return not client_logger.disabled

import logging

import config


class ColoredFormatter(logging.Formatter):
    """A custom formatter to add colors to log messages."""

    COLORS = {
        "DEBUG": "\033[94m",  # Blue
        "INFO": "\033[92m",  # Green
        "WARNING": "\033[93m",  # Yellow
        "ERROR": "\033[91m",  # Red
        "CRITICAL": "\033[91m",  # Red
        "RESET": "\033[0m",  # Reset
    }
    NAME_COLORS = [
        "\033[96m",  # Cyan
        "\033[95m",  # Magenta
        "\033[94m",  # Blue
        "\033[93m",  # Yellow
    ]

    def __init__(self, fmt, datefmt=None):
        super().__init__(fmt, datefmt)
        self.name_color_map = {}

    def format(self, record):
        # Each logger keeps the same color for the lifetime of the process
        if record.name not in self.name_color_map:
            color_index = len(self.name_color_map) % len(self.NAME_COLORS)
            self.name_color_map[record.name] = self.NAME_COLORS[color_index]

        original_name = record.name
        record.name = f"{self.name_color_map[original_name]}{original_name}{self.COLORS['RESET']}"
        try:
            log_message = super().format(record)
        finally:
            record.name = original_name
        return f"{self.COLORS.get(record.levelname, self.COLORS['RESET'])}{log_message}{self.COLORS['RESET']}"


def setup_logging(level=None, fmt=None):
    """Configures logging with the custom formatter."""
    handler = logging.StreamHandler()
    handler.setFormatter(ColoredFormatter(fmt or config.LOG_FORMAT, datefmt="%H:%M:%S"))
    logger = logging.getLogger()
    logger.setLevel(level or config.LOG_LEVEL)
    logger.handlers = [handler]


def format_cycle(cycle):
    """Renders a closed node sequence as 'T1 -> T2 -> T1'."""
    return " -> ".join(str(node) for node in cycle)

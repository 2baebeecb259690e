from .console import ConsoleFormatter, ConsoleColors

__all__ = [
    'ConsoleFormatter',
    'ConsoleColors',
]

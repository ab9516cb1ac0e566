from workmeter.reporting.console import ConsoleReporter

__all__ = ["ConsoleReporter"]

"""Input table validation module."""

from pigmentrf.validation.core import ValidationResult, ValidationRunner
from pigmentrf.validation.reporter import ConsoleReporter

__all__ = ["ConsoleReporter", "ValidationResult", "ValidationRunner"]

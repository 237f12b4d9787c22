"""
Report output: live console reporting and markdown/JSON report files.
"""

from .console import ConsoleReporter
from .generator import ReportGenerator

__all__ = ["ConsoleReporter", "ReportGenerator"]

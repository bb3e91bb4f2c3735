"""Calendar export fetching, parsing and recurrence expansion."""

from .lite_fetcher import CalendarExportFetcher, CalendarFetchError, CalendarNetworkError
from .lite_models import CalendarComponent, Occurrence, OperationResult, Window
from .lite_parser import LiteICSParser
from .lite_rrule_expander import RecurrenceExpander, RRuleExpansionError, RRuleParseError

__all__ = [
    "CalendarComponent",
    "CalendarExportFetcher",
    "CalendarFetchError",
    "CalendarNetworkError",
    "LiteICSParser",
    "Occurrence",
    "OperationResult",
    "RRuleExpansionError",
    "RRuleParseError",
    "RecurrenceExpander",
    "Window",
]

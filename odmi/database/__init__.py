from odmi.database.context import QueryContext
from odmi.database.cursor import Result, ResultState
from odmi.database.results import DBResult


__all__ = ["DBResult", "QueryContext", "Result", "ResultState"]

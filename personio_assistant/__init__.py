"""Command-line client for Personio attendance.

Logs in through the browser login flow, then reads and writes attendance
data through Personio's internal JSON APIs.
"""

__version__ = "0.1.0"

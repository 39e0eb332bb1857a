"""
WinStride event viewer core.

Client-side filtering, search, sorting, list virtualization and process
graph aggregation for Windows Security, PowerShell and Sysmon events.
"""

__version__ = '1.0.0'

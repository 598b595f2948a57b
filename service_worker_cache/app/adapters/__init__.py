from .attendance_client import AttendanceApiClient

__all__ = ["AttendanceApiClient"]

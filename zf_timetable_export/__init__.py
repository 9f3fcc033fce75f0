"""
Import a ZhengFang (正方) academic-portal timetable and export it as
calendar events, iCalendar text, CSV or JSON.
"""
__version__ = "0.1.0"

"""
SliderApp Reminder Service

Recurring-reminder scheduler and push notification delivery engine.
"""

__version__ = "0.1.0"

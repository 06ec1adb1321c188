"""
Services module for FitLife Notifications.
"""

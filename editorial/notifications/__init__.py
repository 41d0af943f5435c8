"""
Editorial Portal - Email Notifications
"""

from editorial.notifications.email import EmailNotifier, SUBJECTS, TEMPLATES_DIR

__all__ = ["EmailNotifier", "SUBJECTS", "TEMPLATES_DIR"]

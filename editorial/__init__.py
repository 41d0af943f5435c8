"""
Editorial Portal - Submission Management Core

Anonymous authors submit articles through time-limited access links;
editors review, request changes, publish or reject them.

Layers:
1. submission: schema, lifecycle, tokens, versions, author service
2. review: admin engine, dashboard, publishing, bulk actions
3. upload: attachment validation and media storage
4. notifications: templated email
5. jobs: expiry cleanup and reminder emails
"""

__version__ = "1.0.0"

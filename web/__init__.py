"""
HTTP surface for the editorial portal.
"""

"""
External collaborators - ads platform metrics and user settings
"""

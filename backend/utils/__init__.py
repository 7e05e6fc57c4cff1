"""
Shared helpers - logging setup and JST time
"""

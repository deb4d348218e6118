"""
Management of mobile services, their tables, scripts and scheduled jobs.
"""

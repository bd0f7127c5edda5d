"""
Services package - the calendar aggregation and credential-lifecycle engine.
"""

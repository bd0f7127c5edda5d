"""
Calendar Gateway - multi-calendar aggregation over delegated Google OAuth credentials.
"""

"""Service layer: token feeds, push feeds, refresh scheduling"""

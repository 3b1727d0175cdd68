"""
Flag league engine: match scoring, stat aggregation, standings and career totals.
"""

"""
Quote pricing engine.

Pure Python math. No I/O, no database, no caching.
Line items + transport zone configuration + margin/retention settings in,
a full QuoteTotals breakdown out. Live preview and persisted totals both go
through engine.compute_quote_totals so the two can never drift apart.
"""

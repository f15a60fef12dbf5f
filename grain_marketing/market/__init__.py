"""
Market context.

Modules
-------
feeds         Feed protocols consumed by the assembler and processor.
sqlite_feeds  Feed implementations backed by the market tables.
indicators    Moving averages, RSI, volatility and trend direction.
basis         Basis percentile and strength labels.
seasonal      Historical monthly patterns and seasonal context.
fundamentals  Supply/demand, crop condition and export pace scoring.
assembler     Combines the feeds into a ``MarketContext``.
"""

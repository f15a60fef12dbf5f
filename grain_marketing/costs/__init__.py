"""
Break-even cost aggregation.

Modules
-------
units       Unit conversion at the cost boundary (fertilizer, chemicals).
loans       Allocation of land, operating and equipment loans to farms.
aggregator  Per-farm break-even, entity splits, entity / commodity rollups.
"""

"""Performance benchmarks for hybridfit.

Microbenchmarks for the direction solve and for complete fits.
"""

"""
Core modules for Usage Economics.

This package contains the period key normalizer, the metric merger,
the dual-metric calculator, the aggregator and the pipeline that ties
them together.
"""

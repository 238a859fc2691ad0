"""Benchmarking engine for benchmeter.

Runs registered operations under an adaptive time/iteration budget,
summarizes the timings with outlier rejection, compares summaries
with Welch's t-test and Cohen's d, and tracks results against a
stored baseline to detect regressions.
"""

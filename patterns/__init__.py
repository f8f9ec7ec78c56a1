"""Reusable patterns behind the bookstore discount engine.

Each module is a self-contained piece that can be adapted to other
pricing domains: the sequential claiming rules engine, the rule registry,
rule configuration, time sources and the error taxonomy.
"""

"""
Command-line entry points for LOINC search.
"""

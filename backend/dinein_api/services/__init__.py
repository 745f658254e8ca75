"""
Services: domain services and background sweepers.
"""

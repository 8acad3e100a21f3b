"""
Lead Pipeline
Lead qualification workflow engine and contact analytics
"""

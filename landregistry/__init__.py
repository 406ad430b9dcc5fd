"""
Land Registry API
"""

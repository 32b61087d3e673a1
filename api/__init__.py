"""
ffgate HTTP API
"""

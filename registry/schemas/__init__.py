"""
Tool and workflow schemas, one module per domain
"""

"""
MCP Chat API modules
"""

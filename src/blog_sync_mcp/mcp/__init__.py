"""MCP stdio server exposing the blog sync core as tools."""

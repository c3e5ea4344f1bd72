"""
AI Financial Insight Dashboard

Aggregates financial news, an economic calendar, political-figure tracking
and crypto technical analysis using Gemini. Serves the result to a tabbed
dashboard page and pushes a digest to a Discord webhook.
"""

__version__ = "1.0.0"

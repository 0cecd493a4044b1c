"""
Sikuwat service package.

A FastAPI application for a farmer cooperative: market prices, articles and
tips managed by admins, planting and harvest records kept by farmers, and an
agricultural chatbot backed by Gemini with a local knowledge base fallback.
"""

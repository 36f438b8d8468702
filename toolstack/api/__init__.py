"""
ToolStack API
=============

FastAPI application exposing index sync triggers and the chatbot.
"""

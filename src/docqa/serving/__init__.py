"""
Serving — FastAPI application exposing upload, document management and
question answering over HTTP.
"""

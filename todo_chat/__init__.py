"""Todo management service with a streaming AI chat relay."""

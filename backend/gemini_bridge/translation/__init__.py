"""
OpenAI <-> Gemini translation

request: chat request -> upstream request body
parts: upstream part classification shared by both response paths
response: complete upstream response -> chat.completion
stream: upstream SSE events -> chat.completion.chunk lines
"""
